"""
Pytest configuration and shared fixtures.

This module provides:
- Environment variable setup for tests
- The in-memory Cosmos DB patched in place of the SDK client
- Settings and repository fixtures
"""

import os
from unittest.mock import patch

import pytest

# Set test environment variables BEFORE any imports
# This must happen first to ensure settings load with test values
os.environ["COSMOS_ENDPOINT"] = "https://localhost:8081/"
os.environ["COSMOS_KEY"] = "dGVzdF9rZXlfZm9yX3VuaXRfdGVzdHM="
os.environ["COSMOS_DATABASE_ID"] = "testdb"
os.environ["COSMOS_COLLECTION_ID"] = "products"
os.environ["COSMOS_TIMEOUT"] = "5000"

from cosmos_fakes import FakeCosmosClient, FakeCosmosServer, ProductRepository  # noqa: E402
from cosmos_repository.core.config import CosmosSettings  # noqa: E402


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def cosmos_server():
    """
    Patch the repository's CosmosClient with the in-memory fake.

    Yields:
        FakeCosmosServer shared by every client created during the test
    """
    server = FakeCosmosServer()

    def client_factory(url, credential=None, **kwargs):
        return FakeCosmosClient(server, url, credential=credential, **kwargs)

    with patch("cosmos_repository.repositories.cosmos.CosmosClient", side_effect=client_factory):
        yield server


@pytest.fixture
def settings():
    """Validated settings pointing at the fake account."""
    return CosmosSettings(
        endpoint="https://localhost:8081/",
        key="dGVzdF9rZXlfZm9yX3VuaXRfdGVzdHM=",
        database_id="testdb",
        collection_id="products",
        timeout="5000",
    )


@pytest.fixture
async def repo(cosmos_server, settings):
    """Ready ProductRepository partitioned on /id."""
    repository = await ProductRepository.create(settings)
    yield repository
    await repository.close()


@pytest.fixture
async def category_repo(cosmos_server, settings):
    """Ready ProductRepository partitioned on /category."""
    repository = await ProductRepository.create(
        settings,
        collection_id="products_by_category",
        partition_key="/category",
    )
    yield repository
    await repository.close()

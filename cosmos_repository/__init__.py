"""
Generic Cosmos DB repository.

Provisions a database and collection on first use and exposes typed CRUD
and predicate queries over pydantic entities.
"""

from cosmos_repository.core.config import CosmosSettings, get_settings
from cosmos_repository.core.exceptions import (
    OperationNotSupportedError,
    ProvisioningTimeoutError,
    RepositoryError,
    RepositoryNotReadyError,
)
from cosmos_repository.models.base import Entity
from cosmos_repository.repositories import IRepository, Repository, field, raw

__all__ = [
    # Configuration
    "CosmosSettings",
    "get_settings",
    # Repository
    "IRepository",
    "Repository",
    "Entity",
    # Predicates
    "field",
    "raw",
    # Errors
    "RepositoryError",
    "RepositoryNotReadyError",
    "ProvisioningTimeoutError",
    "OperationNotSupportedError",
]

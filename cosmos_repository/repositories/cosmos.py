"""
Cosmos DB Repository Implementation

Implements IRepository on top of the azure-cosmos asyncio client.
One repository owns one client and serves one database/collection pair.

Key features:
- Create-if-absent provisioning of the database and collection,
  bounded by the configured timeout
- Partition key path fixed at collection creation (defaults to /id)
- Typed CRUD over pydantic entities
- Cross-partition predicate queries that drain every result page
- Not-found recovered on reads only; every other fault propagates unmodified
- Per-operation latency logging with Cosmos status codes and activity ids
"""

import asyncio
import logging
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Type, Union

from azure.cosmos import PartitionKey
from azure.cosmos.aio import CosmosClient
from azure.cosmos.exceptions import (
    CosmosHttpResponseError,
    CosmosResourceExistsError,
    CosmosResourceNotFoundError,
)
from azure.cosmos.http_constants import StatusCodes
from azure.cosmos.partition_key import NonePartitionKeyValue
from pydantic import BaseModel

from cosmos_repository.core.config import CosmosSettings, normalize_partition_key_path
from cosmos_repository.core.exceptions import (
    OperationNotSupportedError,
    ProvisioningTimeoutError,
    RepositoryNotReadyError,
)
from cosmos_repository.core.logging_config import cosmos_diagnostics, log_with_context
from cosmos_repository.models.base import EntityT, from_document, to_document
from cosmos_repository.repositories.interfaces import IRepository
from cosmos_repository.repositories.predicates import MISSING, FieldRef, Predicate, field

logger = logging.getLogger(__name__)

# Partition key path used when none is configured
DEFAULT_PARTITION_KEY_PATH = "/id"


class Repository(IRepository[EntityT]):
    """
    Generic Cosmos DB repository for one entity type.

    Subclass it per entity, or pass ``entity_type`` directly:

        class ProductRepository(Repository[Product]):
            entity_type = Product

        async with ProductRepository(settings, partition_key="/category") as repo:
            product_id = await repo.add(Product(name="Dune", category="books"))

    Construction performs no I/O. ``initialize()`` (also run by ``create()``
    and ``async with``) provisions the database and collection; data
    operations are rejected until it has completed.

    Attributes:
        entity_type: pydantic model documents are validated into
        client: azure.cosmos.aio.CosmosClient owned by this repository
    """

    entity_type: Optional[Type[EntityT]] = None

    def __init__(
        self,
        settings: CosmosSettings,
        entity_type: Optional[Type[EntityT]] = None,
        *,
        collection_id: Optional[str] = None,
        partition_key: Optional[str] = None
    ):
        """
        Initialize the repository and its client.

        Args:
            settings: Validated connection settings
            entity_type: Entity model (defaults to the class attribute)
            collection_id: Collection override (defaults to settings.collection_id)
            partition_key: Partition key path override (defaults to
                settings.partition_key; "" means no partition key)

        Raises:
            TypeError: If no entity type is available

        Note:
            An unparsable settings.timeout does not fail construction; the
            timeout falls back to DEFAULT_TIMEOUT_MS.
        """
        entity_type = entity_type or type(self).entity_type
        if entity_type is None:
            raise TypeError(
                f"{type(self).__name__} requires an entity_type "
                f"(pass it or set it as a class attribute)"
            )
        self.entity_type = entity_type

        self._database_id = settings.database_id
        self._collection_id = collection_id or settings.collection_id
        self._partition_key = normalize_partition_key_path(
            settings.partition_key if partition_key is None else partition_key
        )
        self._offer_throughput = settings.offer_throughput
        self._timeout_ms = settings.timeout_ms

        self.client = CosmosClient(
            settings.endpoint,
            credential=settings.key,
            connection_timeout=self._timeout_ms / 1000.0,
        )

        self._container = None
        self._ready = False
        self._closed = False
        self._init_lock = asyncio.Lock()

        logger.info(
            f"Repository[{self.entity_type.__name__}] created for "
            f"{self._database_id}/{self._collection_id} "
            f"(partition key: {self.partition_key_path}, timeout: {self._timeout_ms:g} ms)"
        )

    @classmethod
    async def create(
        cls,
        settings: CosmosSettings,
        entity_type: Optional[Type[EntityT]] = None,
        **overrides: Any
    ) -> "Repository[EntityT]":
        """
        Construct a repository and provision its database and collection.

        Args:
            settings: Validated connection settings
            entity_type: Entity model (defaults to the class attribute)
            **overrides: collection_id / partition_key overrides

        Returns:
            Ready repository

        Raises:
            ProvisioningTimeoutError: If provisioning exceeds the timeout
            CosmosHttpResponseError: If the store rejects provisioning
        """
        repository = cls(settings, entity_type, **overrides)
        await repository.initialize()
        return repository

    async def __aenter__(self):
        """Async context manager entry - provisions and returns the repository."""
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit - closes the client."""
        await self.close()

    @property
    def database_id(self) -> str:
        return self._database_id

    @property
    def collection_id(self) -> str:
        return self._collection_id

    @property
    def partition_key(self) -> Optional[str]:
        """Configured partition key path, or None if none was supplied."""
        return self._partition_key

    @property
    def partition_key_path(self) -> str:
        """Partition key path the collection is created with."""
        return self._partition_key or DEFAULT_PARTITION_KEY_PATH

    @property
    def timeout_ms(self) -> float:
        return self._timeout_ms

    @property
    def is_ready(self) -> bool:
        return self._ready

    async def initialize(self) -> None:
        """
        Provision the database and collection if they do not exist.

        Idempotent: concurrent and repeated calls provision once. The whole
        sequence is bounded by the configured timeout; on timeout or any
        provisioning failure the client is closed and the repository can
        no longer be used.

        Raises:
            ProvisioningTimeoutError: If provisioning exceeds the timeout
            RepositoryNotReadyError: If the repository was already closed
            CosmosHttpResponseError: Any read/create failure other than
                not-found (read) or conflict (create)
        """
        if self._ready:
            return

        async with self._init_lock:
            if self._ready:
                return
            if self._closed:
                raise RepositoryNotReadyError(
                    f"Repository for {self._database_id}/{self._collection_id} is closed"
                )

            started = time.perf_counter()
            try:
                self._container = await asyncio.wait_for(
                    self._provision(),
                    timeout=self._timeout_ms / 1000.0
                )
            except asyncio.TimeoutError as e:
                logger.error(
                    f"Provisioning {self._database_id}/{self._collection_id} "
                    f"timed out after {self._timeout_ms:g} ms"
                )
                await self.close()
                raise ProvisioningTimeoutError(
                    self._database_id, self._collection_id, self._timeout_ms
                ) from e
            except Exception:
                logger.error(
                    f"Provisioning {self._database_id}/{self._collection_id} failed",
                    exc_info=True
                )
                await self.close()
                raise

            self._ready = True
            log_with_context(
                logger,
                "info",
                "Repository ready",
                database_id=self._database_id,
                collection_id=self._collection_id,
                operation="initialize",
                latency_ms=round((time.perf_counter() - started) * 1000, 3),
            )

    async def close(self) -> None:
        """Close the client and release its connections."""
        if self._closed:
            return
        self._closed = True
        self._ready = False
        self._container = None
        await self.client.close()
        logger.info(f"Repository for {self._database_id}/{self._collection_id} closed")

    async def _provision(self):
        database = await self._create_database_if_not_exists()
        return await self._create_collection_if_not_exists(database)

    async def _create_database_if_not_exists(self):
        database = self.client.get_database_client(self._database_id)
        try:
            await database.read()
        except CosmosResourceNotFoundError:
            try:
                await self.client.create_database(id=self._database_id)
                logger.info(f"Created database {self._database_id}")
            except CosmosResourceExistsError:
                # Another instance won the read-then-create race
                logger.info(f"Database {self._database_id} was created concurrently")
        return database

    async def _create_collection_if_not_exists(self, database):
        container = database.get_container_client(self._collection_id)
        try:
            await container.read()
        except CosmosResourceNotFoundError:
            options: Dict[str, Any] = {}
            if self._offer_throughput is not None:
                options["offer_throughput"] = self._offer_throughput
            try:
                await database.create_container(
                    id=self._collection_id,
                    partition_key=PartitionKey(path=self.partition_key_path),
                    **options
                )
                logger.info(
                    f"Created collection {self._database_id}/{self._collection_id} "
                    f"(partition key: {self.partition_key_path})"
                )
            except CosmosResourceExistsError:
                logger.info(
                    f"Collection {self._database_id}/{self._collection_id} "
                    f"was created concurrently"
                )
        return container

    def _require_container(self):
        if not self._ready or self._container is None:
            raise RepositoryNotReadyError(
                f"Repository for {self._database_id}/{self._collection_id} is not initialized; "
                f"await initialize() or use Repository.create()"
            )
        return self._container

    @staticmethod
    def _document_id(id: Any) -> str:
        if not isinstance(id, str) or not id:
            raise ValueError(f"Document id must be a non-empty string, got {id!r}")
        return id

    @contextmanager
    def _track(self, operation: str, document_id: Optional[str] = None) -> Iterator[None]:
        """Time one store round trip; log faults with their Cosmos diagnostics."""
        started = time.perf_counter()
        context = {
            "database_id": self._database_id,
            "collection_id": self._collection_id,
            "document_id": document_id,
            "operation": operation,
        }
        try:
            yield
        except CosmosHttpResponseError as e:
            log_with_context(
                logger,
                "warning",
                f"{operation} failed: {e.status_code}",
                latency_ms=round((time.perf_counter() - started) * 1000, 3),
                **context,
                **cosmos_diagnostics(e),
            )
            raise
        log_with_context(
            logger,
            "debug",
            f"{operation} completed",
            latency_ms=round((time.perf_counter() - started) * 1000, 3),
            **context,
        )

    async def _find_document(self, container, document_id: str) -> Optional[Dict[str, Any]]:
        """Locate a document by id across all partitions."""
        query, parameters = (field("id") == document_id).to_query()
        async for document in container.query_items(
            query=query,
            parameters=parameters,
            max_item_count=-1
        ):
            return document
        return None

    def _partition_value(self, document: Dict[str, Any]) -> Any:
        """
        Extract the partition key value of a document.

        A document without the partition key property lives in the
        "undefined" partition, which differs from an explicit JSON null.
        """
        ref = FieldRef(tuple(self.partition_key_path.strip("/").split("/")))
        value = ref.resolve(document)
        return NonePartitionKeyValue if value is MISSING else value

    async def get_by_id(
        self,
        id: str,
        partition_key: Optional[Any] = None
    ) -> Optional[EntityT]:
        """
        Fetch a single entity by identifier.

        See IRepository.get_by_id for full documentation.
        """
        container = self._require_container()
        document_id = self._document_id(id)

        with self._track("get_by_id", document_id):
            try:
                if partition_key is None and self.partition_key_path != DEFAULT_PARTITION_KEY_PATH:
                    # Partition value unknown: locate the document by id instead
                    document = await self._find_document(container, document_id)
                else:
                    document = await container.read_item(
                        item=document_id,
                        partition_key=document_id if partition_key is None else partition_key
                    )
            except CosmosResourceNotFoundError:
                document = None

        if document is None:
            logger.debug(f"Document {document_id} not found in {self._collection_id}")
            return None

        return from_document(self.entity_type, document)

    async def find_by_id(
        self,
        id: str,
        partition_key: Optional[Any] = None
    ) -> bool:
        """
        Check whether an entity with this identifier exists.

        See IRepository.find_by_id for full documentation.
        """
        return (await self.get_by_id(id, partition_key)) is not None

    async def get_all(
        self,
        predicate: Optional[Predicate] = None
    ) -> List[EntityT]:
        """
        Return every entity matching a predicate.

        See IRepository.get_all for full documentation.

        Note:
            The asyncio client fans out across partitions whenever no
            partition key is given, so no cross-partition flag is needed.
        """
        if predicate is None:
            raise OperationNotSupportedError(
                "get_all() without a predicate",
                "pass a predicate such as field('status') == 'active'"
            )
        if not isinstance(predicate, Predicate):
            raise TypeError(f"predicate must be a Predicate, got {type(predicate).__name__}")

        container = self._require_container()
        query, parameters = predicate.to_query()

        results: List[EntityT] = []
        with self._track("get_all"):
            pages = container.query_items(
                query=query,
                parameters=parameters,
                max_item_count=-1
            ).by_page()
            async for page in pages:
                async for document in page:
                    results.append(from_document(self.entity_type, document))

        logger.debug(f"get_all returned {len(results)} documents from {self._collection_id}")
        return results

    async def add(self, entity: EntityT) -> str:
        """
        Insert a new entity.

        See IRepository.add for full documentation.
        """
        if not isinstance(entity, BaseModel):
            raise TypeError(f"entity must be a pydantic model, got {type(entity).__name__}")

        container = self._require_container()
        body = to_document(entity)

        with self._track("add", body.get("id")):
            created = await container.create_item(
                body=body,
                enable_automatic_id_generation=True
            )

        return created["id"]

    async def update(self, entity: EntityT, id: str) -> None:
        """
        Replace the document at ``id`` with ``entity``.

        See IRepository.update for full documentation.
        """
        if not isinstance(entity, BaseModel):
            raise TypeError(f"entity must be a pydantic model, got {type(entity).__name__}")

        container = self._require_container()
        document_id = self._document_id(id)
        body = to_document(entity)
        body["id"] = document_id

        with self._track("update", document_id):
            await container.replace_item(item=document_id, body=body)

    async def delete_by(
        self,
        target: Union[str, EntityT],
        partition_key: Optional[Any] = None
    ) -> None:
        """
        Delete a document by identifier.

        See IRepository.delete_by for full documentation.
        """
        if isinstance(target, BaseModel):
            raise OperationNotSupportedError(
                "delete_by(entity)",
                "pass the document id instead"
            )

        container = self._require_container()
        document_id = self._document_id(target)

        with self._track("delete_by", document_id):
            if partition_key is None:
                partition_key = await self._resolve_partition_value(container, document_id)
            await container.delete_item(item=document_id, partition_key=partition_key)

    async def _resolve_partition_value(self, container, document_id: str) -> Any:
        """
        Partition key value for a write addressed only by id.

        Raises:
            CosmosResourceNotFoundError: If no document has this identifier
        """
        if self.partition_key_path == DEFAULT_PARTITION_KEY_PATH:
            return document_id

        document = await self._find_document(container, document_id)
        if document is None:
            raise CosmosResourceNotFoundError(
                status_code=StatusCodes.NOT_FOUND,
                message=f"Document {document_id} does not exist in {self._collection_id}"
            )
        return self._partition_value(document)

"""
Repository Interface (IRepository)

Abstract base class defining the contract application code depends on for
document persistence. Implementations own their connection to the store and
must hide the underlying database client entirely.

Implementation guide:
- All data methods must be async
- Reads treat "not found" as an absent result (None), never as an error
- Writes (update, delete) let "not found" propagate as the store's fault
- Overloads that are not supported raise OperationNotSupportedError
"""

from abc import ABC, abstractmethod
from typing import Any, Generic, List, Optional, Union

from cosmos_repository.models.base import EntityT
from cosmos_repository.repositories.predicates import Predicate


class IRepository(ABC, Generic[EntityT]):
    """
    Abstract interface for typed document CRUD and predicate queries.

    Entities are addressed by a string identifier. Every operation is
    independent; implementations may be used concurrently by many callers.
    """

    @abstractmethod
    async def get_by_id(
        self,
        id: str,
        partition_key: Optional[Any] = None
    ) -> Optional[EntityT]:
        """
        Fetch a single entity by identifier.

        Args:
            id: Document identifier
            partition_key: Partition key value of the document (optional;
                resolved automatically when omitted)

        Returns:
            The entity, or None if no document has this identifier

        Raises:
            ValueError: If id is not a non-empty string
            RepositoryNotReadyError: If the repository is not initialized
            CosmosHttpResponseError: Any store failure other than not-found

        Note:
            Absence is a normal outcome here. This is the only operation
            (together with find_by_id) that recovers not-found locally.
        """
        pass

    @abstractmethod
    async def find_by_id(
        self,
        id: str,
        partition_key: Optional[Any] = None
    ) -> bool:
        """
        Check whether an entity with this identifier exists.

        Args:
            id: Document identifier
            partition_key: Partition key value of the document (optional)

        Returns:
            True if get_by_id would return an entity, False otherwise

        Raises:
            Same as get_by_id
        """
        pass

    @abstractmethod
    async def get_all(
        self,
        predicate: Optional[Predicate] = None
    ) -> List[EntityT]:
        """
        Return every entity matching a predicate.

        Queries across all partitions and drains all result pages before
        returning; no pagination or result cap is exposed.

        Args:
            predicate: Filter over entity fields (required)

        Returns:
            Matching entities in the order the store returned them (possibly empty)

        Raises:
            OperationNotSupportedError: If called without a predicate
            CosmosHttpResponseError: On any store failure

        Example:
            >>> books = await repo.get_all(field("category") == "books")
        """
        pass

    @abstractmethod
    async def add(self, entity: EntityT) -> str:
        """
        Insert a new entity.

        Args:
            entity: Fully populated entity; its id may be unset

        Returns:
            Identifier of the stored document (assigned if the entity had none)

        Raises:
            CosmosResourceExistsError: If a document with the same id exists
            CosmosHttpResponseError: On any other store failure
        """
        pass

    @abstractmethod
    async def update(self, entity: EntityT, id: str) -> None:
        """
        Replace the document at ``id`` with ``entity``.

        Full-document replace, last writer wins; no field merging and no
        concurrency token check.

        Args:
            entity: Replacement entity
            id: Identifier of the document to replace

        Raises:
            CosmosResourceNotFoundError: If no document has this identifier
            CosmosHttpResponseError: On any other store failure
        """
        pass

    @abstractmethod
    async def delete_by(
        self,
        target: Union[str, EntityT],
        partition_key: Optional[Any] = None
    ) -> None:
        """
        Delete a document by identifier.

        Args:
            target: Document identifier. Passing an entity is not supported.
            partition_key: Partition key value of the document (optional)

        Raises:
            OperationNotSupportedError: If an entity instance is passed
            CosmosResourceNotFoundError: If no document has this identifier
            CosmosHttpResponseError: On any other store failure
        """
        pass

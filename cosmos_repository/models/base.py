"""
Base model for entities stored as Cosmos DB documents.

Provides the pydantic base class every repository entity derives from,
plus helpers to convert between entities and raw document bodies.
"""

from typing import Any, Dict, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict


# Server-generated properties Cosmos DB adds to every stored document
SYSTEM_PROPERTIES = frozenset({"_rid", "_self", "_etag", "_attachments", "_ts"})

# Any pydantic model can be stored; Entity is the usual base
EntityT = TypeVar("EntityT", bound=BaseModel)


class Entity(BaseModel):
    """
    Base class for documents managed by a Repository.

    The ``id`` is the document address inside a collection. It may be left
    unset on new entities; the store assigns one on insert.

    Attributes:
        id: Document identifier (string), None until assigned

    Example:
        class Product(Entity):
            name: str
            category: str
            price: float
    """

    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None


def to_document(entity: BaseModel) -> Dict[str, Any]:
    """
    Serialize an entity into a JSON-compatible document body.

    Args:
        entity: Entity instance

    Returns:
        Document dict; ``id`` is omitted when unset so the store can assign it
    """
    document = entity.model_dump(mode="json", by_alias=True)
    if document.get("id") is None:
        document.pop("id", None)
    return document


def from_document(entity_type: Type[EntityT], document: Dict[str, Any]) -> EntityT:
    """
    Deserialize a stored document into an entity, dropping system properties.

    Args:
        entity_type: Entity class to validate into
        document: Raw document returned by Cosmos DB

    Returns:
        Validated entity instance
    """
    body = {
        key: value
        for key, value in document.items()
        if key not in SYSTEM_PROPERTIES
    }
    return entity_type.model_validate(body)

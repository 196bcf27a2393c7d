"""
Entity models for documents stored through a Repository.
"""

from cosmos_repository.models.base import Entity, SYSTEM_PROPERTIES, from_document, to_document

__all__ = [
    "Entity",
    "SYSTEM_PROPERTIES",
    "from_document",
    "to_document",
]

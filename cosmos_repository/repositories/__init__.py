"""
Repository layer for data access.

Provides data access abstractions following the Repository pattern,
isolating the Cosmos DB client from application code.
"""

from cosmos_repository.repositories.interfaces import IRepository
from cosmos_repository.repositories.cosmos import Repository
from cosmos_repository.repositories.predicates import Predicate, field, raw

__all__ = [
    'IRepository',
    'Repository',
    'Predicate',
    'field',
    'raw',
]

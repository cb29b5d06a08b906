"""MongoDB-backed store client (requires ``pymongo``)."""

from __future__ import annotations

from .client import META_COLLECTION, MongoStoreClient
from .connection import MongoConnectionManager
from .query_builder import MongoQueryBuilder

__all__ = [
    "META_COLLECTION",
    "MongoConnectionManager",
    "MongoQueryBuilder",
    "MongoStoreClient",
]

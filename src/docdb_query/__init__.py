"""
docdb-query: criteria-based queries, paging and data access for JSON
document stores.

Build a criteria tree, wrap it in a :class:`DocumentQuery`, and run it
through :class:`DocumentOperations` (blocking) or
:class:`AsyncDocumentOperations` (future-returning) against any
:class:`StoreClient`.
"""

from __future__ import annotations

from .aio import AsyncDocumentOperations
from .config import DocumentDbConfig
from .criteria import (
    Combinator,
    CriteriaBuilder,
    CriteriaNode,
    CriteriaType,
    Leaf,
    Proximity,
    and_,
    leaf,
    or_,
)
from .exceptions import (
    CollectionNotFoundError,
    DocumentConversionError,
    DocumentDbAccessError,
    DocumentDbError,
    InvalidPaginationStateError,
    PartitionKeyRequiredError,
    QueryTranslationError,
    SqlSyntaxError,
    StoreBadRequestError,
    StoreConflictError,
    StoreNotFoundError,
    StoreThrottledError,
    StoreUnavailableError,
)
from .execution import ResultShape
from .mapping import DocumentConverter, EntityInformation, document
from .operations import DocumentOperations
from .pagination import CursorState, Page, PageCursor, PageRequest
from .ports import CollectionSpec, FeedPage, IndexingMode, IndexingPolicy, StoreClient
from .query import DocumentQuery
from .sort import Direction, Order, Sort
from .store import InMemoryStoreClient
from .translation import NativeQuery, QueryParameter, SqlQueryTranslator

__all__ = [
    # Criteria
    "CriteriaType",
    "Proximity",
    "CriteriaNode",
    "Combinator",
    "Leaf",
    "CriteriaBuilder",
    "and_",
    "or_",
    "leaf",
    # Query shaping
    "DocumentQuery",
    "Sort",
    "Order",
    "Direction",
    "PageRequest",
    "PageCursor",
    "CursorState",
    "Page",
    # Translation
    "SqlQueryTranslator",
    "NativeQuery",
    "QueryParameter",
    # Data access
    "DocumentOperations",
    "AsyncDocumentOperations",
    "ResultShape",
    "DocumentDbConfig",
    "StoreClient",
    "InMemoryStoreClient",
    "CollectionSpec",
    "FeedPage",
    "IndexingMode",
    "IndexingPolicy",
    # Mapping
    "document",
    "EntityInformation",
    "DocumentConverter",
    # Exceptions
    "DocumentDbError",
    "QueryTranslationError",
    "InvalidPaginationStateError",
    "PartitionKeyRequiredError",
    "DocumentConversionError",
    "DocumentDbAccessError",
    "StoreConflictError",
    "StoreNotFoundError",
    "CollectionNotFoundError",
    "StoreBadRequestError",
    "SqlSyntaxError",
    "StoreThrottledError",
    "StoreUnavailableError",
]

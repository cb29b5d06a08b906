"""
StoreClient: the boundary to the document store.

The store is an opaque service. It receives a native query (dialect text,
bound parameters, page size, continuation token, partition key) and returns
raw documents plus an opaque continuation token. Implementations map their
driver's failures onto the :mod:`docdb_query.exceptions` hierarchy.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ..translation.native import NativeQuery


class IndexingMode(str, Enum):
    CONSISTENT = "consistent"
    LAZY = "lazy"
    NONE = "none"


@dataclass(frozen=True)
class IndexingPolicy:
    """Collection indexing settings applied on creation."""

    automatic: bool = True
    mode: IndexingMode = IndexingMode.CONSISTENT

    def to_dict(self) -> dict[str, Any]:
        return {"automatic": self.automatic, "indexingMode": self.mode.value}


@dataclass(frozen=True)
class CollectionSpec:
    """
    Collection definition.

    ``partition_key_path`` is a JSON path such as ``/lastName`` or
    ``/address/city``; ``None`` means the collection is not partitioned.
    """

    name: str
    partition_key_path: str | None = None
    indexing_policy: IndexingPolicy = field(default_factory=IndexingPolicy)

    @property
    def is_partitioned(self) -> bool:
        return self.partition_key_path is not None

    @property
    def partition_key_field(self) -> str | None:
        """Dot-path form of the partition key path (``address.city``)."""
        if self.partition_key_path is None:
            return None
        return self.partition_key_path.strip("/").replace("/", ".")


@dataclass(frozen=True)
class FeedPage:
    """One round-trip worth of documents and the token to resume after them."""

    documents: list[dict[str, Any]]
    continuation: str | None = None


@runtime_checkable
class StoreClient(Protocol):
    """
    Blocking document store client.

    Raises:
        CollectionNotFoundError: The collection does not exist.
        StoreConflictError: ``create_*`` on an existing collection or id.
        StoreNotFoundError: ``delete_item`` on a missing id.
        StoreBadRequestError: The store cannot run the native query.
        InvalidPaginationStateError: The continuation token does not belong
            to the query it was sent with.
        StoreThrottledError, StoreUnavailableError: Transport failures.
    """

    def read_collection(self, name: str) -> CollectionSpec | None: ...

    def create_collection(self, spec: CollectionSpec) -> CollectionSpec: ...

    def delete_collection(self, name: str) -> None: ...

    def query(self, collection: str, native: NativeQuery) -> FeedPage: ...

    def read_item(
        self, collection: str, item_id: str, partition_key: Any = None
    ) -> dict[str, Any] | None: ...

    def create_item(self, collection: str, document: dict[str, Any]) -> dict[str, Any]: ...

    def upsert_item(self, collection: str, document: dict[str, Any]) -> dict[str, Any]: ...

    def delete_item(
        self, collection: str, item_id: str, partition_key: Any = None
    ) -> None: ...

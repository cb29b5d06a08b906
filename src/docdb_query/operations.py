"""
DocumentOperations: blocking data-access facade over a store client.

Every call translates its request into a native query (or a point
operation), runs it through the :class:`StoreClient` and maps the returned
documents back to entities. The only state held between calls is a cache of
collections already known to exist.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any, TypeVar

from .config import DocumentDbConfig
from .criteria.nodes import leaf
from .criteria.operators import CriteriaType
from .exceptions import (
    InvalidPaginationStateError,
    PartitionKeyRequiredError,
    StoreBadRequestError,
    StoreConflictError,
)
from .execution import ResultShape, dispatch
from .mapping.converter import DocumentConverter
from .mapping.metadata import EntityInformation
from .pagination import Page, PageCursor, PageRequest, as_cursor
from .ports.store import CollectionSpec
from .query import DocumentQuery
from .translation.translator import SqlQueryTranslator

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from pydantic import BaseModel

    from .ports.store import FeedPage, StoreClient
    from .translation.native import NativeQuery

T = TypeVar("T", bound="BaseModel")

logger = logging.getLogger(__name__)


class DocumentOperations:
    """
    Blocking operations over one store.

    Usage::

        ops = DocumentOperations(InMemoryStoreClient())
        ops.ensure_collection(Person)
        ops.insert(Person(id="1", first_name="Ada", last_name="Lovelace"))

        query = DocumentQuery(
            criteria=leaf(CriteriaType.IS_EQUAL, "last_name", ["Lovelace"]),
            page=PageRequest(size=20),
        )
        page = ops.find_page(query, Person)
        while page.next_cursor is not None:
            page = ops.find_page(query.with_page(page.next_cursor), Person)
    """

    def __init__(
        self,
        store: StoreClient,
        *,
        config: DocumentDbConfig | None = None,
        converter: DocumentConverter | None = None,
        translator: SqlQueryTranslator | None = None,
    ) -> None:
        self._store = store
        self._config = config or DocumentDbConfig()
        self._converter = converter or DocumentConverter()
        self._translator = translator or SqlQueryTranslator()
        self._collection_cache: dict[str, CollectionSpec] = {}
        self._cache_lock = threading.Lock()

    @property
    def config(self) -> DocumentDbConfig:
        return self._config

    @property
    def store(self) -> StoreClient:
        return self._store

    # -- collections ---------------------------------------------------------

    def get_collection_name(self, entity_type: type) -> str:
        return EntityInformation.of(entity_type).collection

    def ensure_collection(self, target: CollectionSpec | type) -> CollectionSpec:
        """
        Return the collection for ``target``, creating it if needed.

        Safe under concurrent first use: two callers may both try to create
        the collection, and the loser's conflict is swallowed.
        """
        if isinstance(target, CollectionSpec):
            spec = target
        else:
            spec = EntityInformation.of(target).collection_spec()

        with self._cache_lock:
            cached = self._collection_cache.get(spec.name)
        if cached is not None:
            return cached

        existing = self._store.read_collection(spec.name)
        if existing is None:
            try:
                existing = self._store.create_collection(spec)
                logger.info(
                    "Created collection %s in database %s (partition key: %s)",
                    spec.name,
                    self._config.database,
                    spec.partition_key_path,
                )
            except StoreConflictError:
                logger.debug("Collection %s was created concurrently", spec.name)
                existing = self._store.read_collection(spec.name) or spec

        with self._cache_lock:
            self._collection_cache[spec.name] = existing
        return existing

    def delete_collection(self, target: str | type) -> None:
        name = target if isinstance(target, str) else self.get_collection_name(target)
        with self._cache_lock:
            self._collection_cache.pop(name, None)
        self._store.delete_collection(name)
        logger.info("Deleted collection %s from database %s", name, self._config.database)

    # -- point operations ----------------------------------------------------

    def find_by_id(
        self,
        entity_type: type[T],
        item_id: Any,
        *,
        partition_key: Any = None,
        collection: str | None = None,
    ) -> T | None:
        info = EntityInformation.of(entity_type)
        collection = collection or info.collection
        self._require_partition_key(info, collection, partition_key)
        document = self._store.read_item(collection, str(item_id), partition_key)
        if document is None:
            return None
        return self._converter.read(document, entity_type)

    def insert(
        self, entity: T, *, partition_key: Any = None, collection: str | None = None
    ) -> T:
        """Create a new document. Fails with ``StoreConflictError`` on a duplicate id."""
        collection, document = self._prepare_write(entity, partition_key, collection)
        stored = self._store.create_item(collection, document)
        logger.debug("Inserted %s into %s", document.get("id"), collection)
        return self._converter.read(stored, type(entity))

    def upsert(
        self, entity: T, *, partition_key: Any = None, collection: str | None = None
    ) -> T:
        """Create or overwrite a document."""
        collection, document = self._prepare_write(entity, partition_key, collection)
        stored = self._store.upsert_item(collection, document)
        logger.debug("Upserted %s into %s", document.get("id"), collection)
        return self._converter.read(stored, type(entity))

    def delete_by_id(
        self,
        entity_type: type,
        item_id: Any,
        *,
        partition_key: Any = None,
        collection: str | None = None,
    ) -> None:
        info = EntityInformation.of(entity_type)
        collection = collection or info.collection
        self._require_partition_key(info, collection, partition_key)
        self._store.delete_item(collection, str(item_id), partition_key)
        logger.debug("Deleted %s from %s", item_id, collection)

    def _prepare_write(
        self, entity: BaseModel, partition_key: Any, collection: str | None
    ) -> tuple[str, dict[str, Any]]:
        info = EntityInformation.of(type(entity))
        collection = collection or info.collection
        derived = info.partition_key_of(entity)
        if partition_key is not None and derived is not None and partition_key != derived:
            raise StoreBadRequestError(
                f"Partition key {partition_key!r} does not match the entity's "
                f"'{info.partition_key_field}' value {derived!r}"
            )
        effective = derived if derived is not None else partition_key
        self._require_partition_key(info, collection, effective)
        return collection, self._converter.write(entity)

    @staticmethod
    def _require_partition_key(
        info: EntityInformation, collection: str, partition_key: Any
    ) -> None:
        if info.is_partitioned and partition_key is None:
            raise PartitionKeyRequiredError(collection, info.partition_key_path or "")

    # -- queries -------------------------------------------------------------

    def find_all(
        self,
        entity_type: type[T],
        *,
        partition_key: Any = None,
        collection: str | None = None,
    ) -> list[T]:
        return self.find(
            DocumentQuery(partition_key=partition_key), entity_type, collection=collection
        )

    def find_by_ids(
        self, entity_type: type[T], ids: Iterable[Any], *, collection: str | None = None
    ) -> list[T]:
        values = [str(i) for i in ids]
        if not values:
            return []
        query = DocumentQuery(criteria=leaf(CriteriaType.IN, "id", values))
        return self.find(query, entity_type, collection=collection)

    def find(
        self, query: DocumentQuery, entity_type: type[T], *, collection: str | None = None
    ) -> list[T]:
        """Every match, in sort order. A page on the query only contributes its sort."""
        collection = self._resolve_collection(query, entity_type, collection)
        unpaged = query.with_sort(query.effective_sort).with_page(None)
        native = self._translator.translate(unpaged)
        return [
            self._converter.read(document, entity_type)
            for document in self._drain(collection, native)
        ]

    def find_one(
        self, query: DocumentQuery, entity_type: type[T], *, collection: str | None = None
    ) -> T | None:
        found = self.find(query.with_limit(1), entity_type, collection=collection)
        return found[0] if found else None

    def exists(
        self, query: DocumentQuery, entity_type: type, *, collection: str | None = None
    ) -> bool:
        collection = self._resolve_collection(query, entity_type, collection)
        feed = self._run(collection, self._translator.translate_exists(query))
        return bool(feed.documents)

    def count(self, entity_type: type, *, collection: str | None = None) -> int:
        return self.count_matching(DocumentQuery(), entity_type, collection=collection)

    def count_matching(
        self, query: DocumentQuery, entity_type: type, *, collection: str | None = None
    ) -> int:
        collection = self._resolve_collection(query, entity_type, collection)
        feed = self._run(collection, self._translator.translate_count(query))
        return int(sum(feed.documents))

    def find_page(
        self, query: DocumentQuery, entity_type: type[T], *, collection: str | None = None
    ) -> Page[T]:
        """
        Fetch one page.

        ``query.page`` must be a first-page request or the ``next_cursor`` of
        the previous page. The returned page carries the cursor for the
        following page, or ``None`` once the results are exhausted.

        Raises:
            InvalidPaginationStateError: No page request, or a non-first
                page without a continuation token. Raised before any store
                call.
        """
        if query.page is None:
            raise InvalidPaginationStateError("find_page requires a page request")
        cursor = as_cursor(query.page)
        collection = self._resolve_collection(query, entity_type, collection)
        native = self._translator.translate(query.with_page(cursor))
        feed = self._run(collection, native)
        items = [self._converter.read(document, entity_type) for document in feed.documents]
        return Page(items=items, request=cursor, next_cursor=cursor.next(feed.continuation))

    def find_all_page(
        self,
        entity_type: type[T],
        page_request: PageRequest | None = None,
        *,
        partition_key: Any = None,
        collection: str | None = None,
    ) -> Page[T]:
        page_request = page_request or PageCursor(size=self._config.default_page_size)
        query = DocumentQuery(page=page_request, partition_key=partition_key)
        return self.find_page(query, entity_type, collection=collection)

    def execute(
        self,
        query: DocumentQuery,
        entity_type: type,
        shape: ResultShape | str = ResultShape.LIST,
        *,
        delete: bool = False,
        collection: str | None = None,
    ) -> Any:
        """Run ``query`` through the strategy selected for ``shape``."""
        return dispatch(query, shape, delete=delete).execute(
            self, query, entity_type, collection
        )

    # -- deletes -------------------------------------------------------------

    def delete(
        self, query: DocumentQuery, entity_type: type[T], *, collection: str | None = None
    ) -> list[T]:
        """Delete every match and return the deleted entities."""
        info = EntityInformation.of(entity_type)
        collection = collection or info.collection
        deleted = self.find(query, entity_type, collection=collection)
        for entity in deleted:
            self._store.delete_item(
                collection, str(info.id_of(entity)), info.partition_key_of(entity)
            )
        logger.debug("Deleted %d document(s) from %s", len(deleted), collection)
        return deleted

    def delete_all(self, entity_type: type, *, collection: str | None = None) -> None:
        self.delete(DocumentQuery(), entity_type, collection=collection)

    # -- helpers -------------------------------------------------------------

    def _resolve_collection(
        self, query: DocumentQuery, entity_type: type, collection: str | None
    ) -> str:
        info = EntityInformation.of(entity_type)
        collection = collection or info.collection
        if (
            info.is_partitioned
            and query.partition_key is None
            and not self._config.enable_cross_partition_query
        ):
            raise PartitionKeyRequiredError(collection, info.partition_key_path or "")
        return collection

    def _run(self, collection: str, native: NativeQuery) -> FeedPage:
        logger.debug(
            "Query on %s: %s params=%s max_items=%s continuation=%s",
            collection,
            native.text,
            native.bindings,
            native.max_item_count,
            native.continuation is not None,
        )
        return self._store.query(collection, native)

    def _drain(self, collection: str, native: NativeQuery) -> Iterator[dict[str, Any]]:
        """Yield every document, one store round-trip per page."""
        request = native.with_page(self._config.default_page_size, None)
        while True:
            feed = self._run(collection, request)
            yield from feed.documents
            if not feed.continuation:
                return
            request = request.with_page(request.max_item_count, feed.continuation)

"""
InMemoryStoreClient: dict-backed store that runs the native SQL dialect.

Used by the test-suite and for local development. It parses each native
statement, evaluates it with the store's value semantics and issues real
continuation tokens, so paging through it behaves like paging through a
remote store.
"""

from __future__ import annotations

import copy
import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ..exceptions import (
    CollectionNotFoundError,
    StoreBadRequestError,
    StoreConflictError,
    StoreNotFoundError,
)
from ..ports.store import CollectionSpec, FeedPage
from ..sql import UNDEFINED, Evaluator, FunctionRegistry, compare_keys, parse
from ..sql.evaluator import resolve_path
from . import tokens

if TYPE_CHECKING:
    from ..translation.native import NativeQuery

logger = logging.getLogger(__name__)


@dataclass
class _Collection:
    spec: CollectionSpec
    items: dict[str, dict[str, Any]] = field(default_factory=dict)

    def partition_key_of(self, document: dict[str, Any]) -> Any:
        if self.spec.partition_key_field is None:
            return None
        value = resolve_path(document, self.spec.partition_key_field.split("."))
        return None if value is UNDEFINED else value

    def in_partition(self, document: dict[str, Any], partition_key: Any) -> bool:
        if partition_key is None or not self.spec.is_partitioned:
            return True
        return bool(self.partition_key_of(document) == partition_key)


class InMemoryStoreClient:
    """
    Thread-safe in-memory implementation of :class:`StoreClient`.

    Ids are unique per collection. Every write stamps ``_ts`` (epoch seconds)
    and ``_etag`` on the stored document, like a real store would.
    """

    def __init__(self, *, functions: FunctionRegistry | None = None) -> None:
        self._collections: dict[str, _Collection] = {}
        self._lock = threading.RLock()
        self._functions = functions or FunctionRegistry.default()

    # -- collections ---------------------------------------------------------

    def read_collection(self, name: str) -> CollectionSpec | None:
        with self._lock:
            collection = self._collections.get(name)
            return collection.spec if collection is not None else None

    def create_collection(self, spec: CollectionSpec) -> CollectionSpec:
        with self._lock:
            if spec.name in self._collections:
                raise StoreConflictError(f"Collection '{spec.name}' already exists")
            self._collections[spec.name] = _Collection(spec)
        logger.debug("Created in-memory collection %s", spec.name)
        return spec

    def delete_collection(self, name: str) -> None:
        with self._lock:
            if self._collections.pop(name, None) is None:
                raise CollectionNotFoundError(name)

    def _collection(self, name: str) -> _Collection:
        collection = self._collections.get(name)
        if collection is None:
            raise CollectionNotFoundError(name)
        return collection

    # -- queries -------------------------------------------------------------

    def query(self, collection: str, native: NativeQuery) -> FeedPage:
        statement = parse(native.text)
        bindings = native.bindings
        unbound = statement.parameter_names() - bindings.keys()
        if unbound:
            raise StoreBadRequestError(
                f"Unbound query parameters: {', '.join(sorted(unbound))}"
            )
        evaluator = Evaluator(bindings, self._functions)

        with self._lock:
            target = self._collection(collection)
            candidates = [
                copy.deepcopy(doc)
                for doc in target.items.values()
                if target.in_partition(doc, native.partition_key)
            ]

        matched = [doc for doc in candidates if evaluator.matches(statement.where, doc)]
        if statement.count:
            return FeedPage([len(matched)])

        ordered = evaluator.sort(statement.order_by, matched)
        if statement.top is not None:
            ordered = ordered[: statement.top]

        fingerprint = tokens.fingerprint(native)
        served = 0
        if native.continuation:
            resume = tokens.decode(native.continuation, fingerprint)
            served = resume.served
            descending = evaluator.descending(statement.order_by)
            ordered = [
                doc
                for doc in ordered
                if compare_keys(
                    evaluator.position(statement.order_by, doc),
                    resume.position,
                    descending,
                )
                > 0
            ]

        size = native.max_item_count
        if size is None or len(ordered) <= size:
            return FeedPage(ordered)
        page = ordered[:size]
        token = tokens.encode(
            fingerprint,
            evaluator.position(statement.order_by, page[-1]),
            served + len(page),
        )
        return FeedPage(page, token)

    # -- items ---------------------------------------------------------------

    def read_item(
        self, collection: str, item_id: str, partition_key: Any = None
    ) -> dict[str, Any] | None:
        with self._lock:
            target = self._collection(collection)
            doc = target.items.get(item_id)
            if doc is None or not target.in_partition(doc, partition_key):
                return None
            return copy.deepcopy(doc)

    def create_item(self, collection: str, document: dict[str, Any]) -> dict[str, Any]:
        item_id = self._require_id(document)
        with self._lock:
            target = self._collection(collection)
            if item_id in target.items:
                raise StoreConflictError(
                    f"Item '{item_id}' already exists in '{collection}'", item_id=item_id
                )
            return self._store(target, item_id, document)

    def upsert_item(self, collection: str, document: dict[str, Any]) -> dict[str, Any]:
        item_id = self._require_id(document)
        with self._lock:
            target = self._collection(collection)
            return self._store(target, item_id, document)

    def delete_item(self, collection: str, item_id: str, partition_key: Any = None) -> None:
        with self._lock:
            target = self._collection(collection)
            doc = target.items.get(item_id)
            if doc is None or not target.in_partition(doc, partition_key):
                raise StoreNotFoundError(f"Item '{item_id}' not found in '{collection}'")
            del target.items[item_id]

    @staticmethod
    def _require_id(document: dict[str, Any]) -> str:
        item_id = document.get("id")
        if not isinstance(item_id, str) or not item_id:
            raise StoreBadRequestError("Document must carry a non-empty string 'id'")
        return item_id

    @staticmethod
    def _store(target: _Collection, item_id: str, document: dict[str, Any]) -> dict[str, Any]:
        stored = copy.deepcopy(document)
        stored["_ts"] = int(time.time())
        stored["_etag"] = uuid.uuid4().hex
        target.items[item_id] = stored
        return copy.deepcopy(stored)

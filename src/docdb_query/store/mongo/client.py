"""
MongoStoreClient: run native statements against MongoDB through pymongo.

Each native statement is parsed and compiled into a Mongo filter plus sort;
continuation tokens use the same codec as the in-memory store, resuming
with a seek filter on the last delivered sort position.

Semantics differ from the SQL store in two places (Mongo behaviour wins):

* comparisons are type-bracketed, so a seek across documents whose sort key
  has mixed JSON types may skip documents of another type;
* ``NOT (...)`` compiles to ``$nor`` and therefore also matches documents
  where the property is missing.

Collection definitions (partition key path, indexing policy) are kept in a
metadata collection so that ``read_collection`` survives restarts.
"""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from pymongo.errors import (
    ConnectionFailure,
    DuplicateKeyError,
    ExecutionTimeout,
    OperationFailure,
)

from ...exceptions import (
    CollectionNotFoundError,
    StoreBadRequestError,
    StoreConflictError,
    StoreNotFoundError,
    StoreThrottledError,
    StoreUnavailableError,
)
from ...ports.store import CollectionSpec, FeedPage, IndexingMode, IndexingPolicy
from ...sql import Evaluator, parse
from .. import tokens
from .query_builder import MongoQueryBuilder

if TYPE_CHECKING:
    from collections.abc import Iterator

    from pymongo.collection import Collection
    from pymongo.database import Database

    from ...translation.native import NativeQuery
    from .connection import MongoConnectionManager

logger = logging.getLogger(__name__)

META_COLLECTION = "__docdb_collections__"

# Server error code for "request rate is large".
_THROTTLED_CODE = 16500


class MongoStoreClient:
    """:class:`StoreClient` over a pymongo ``Database``."""

    def __init__(
        self,
        database: Database[Any] | None = None,
        *,
        connection: MongoConnectionManager | None = None,
        meta_collection: str = META_COLLECTION,
    ) -> None:
        if database is None:
            if connection is None:
                raise ValueError("Either a database or a connection manager is required")
            database = connection.database()
        self._db = database
        self._meta = database[meta_collection]

    @contextmanager
    def _errors(self, collection: str, item_id: Any = None) -> Iterator[None]:
        """Map driver errors onto the store error hierarchy."""
        try:
            yield
        except DuplicateKeyError as e:
            raise StoreConflictError(
                f"Item '{item_id}' already exists in '{collection}'", item_id=item_id
            ) from e
        except ExecutionTimeout as e:
            raise StoreUnavailableError(f"Operation on '{collection}' timed out") from e
        except OperationFailure as e:
            if e.code == _THROTTLED_CODE:
                raise StoreThrottledError(str(e)) from e
            raise StoreBadRequestError(str(e)) from e
        except ConnectionFailure as e:
            raise StoreUnavailableError(str(e)) from e

    # -- collections ---------------------------------------------------------

    def read_collection(self, name: str) -> CollectionSpec | None:
        with self._errors(name):
            meta = self._meta.find_one({"_id": name})
        if meta is None:
            return None
        policy = meta.get("indexing_policy") or {}
        return CollectionSpec(
            name=name,
            partition_key_path=meta.get("partition_key_path"),
            indexing_policy=IndexingPolicy(
                automatic=policy.get("automatic", True),
                mode=IndexingMode(policy.get("mode", IndexingMode.CONSISTENT.value)),
            ),
        )

    def create_collection(self, spec: CollectionSpec) -> CollectionSpec:
        meta = {
            "_id": spec.name,
            "partition_key_path": spec.partition_key_path,
            "indexing_policy": {
                "automatic": spec.indexing_policy.automatic,
                "mode": spec.indexing_policy.mode.value,
            },
        }
        try:
            with self._errors(spec.name, spec.name):
                self._meta.insert_one(meta)
        except StoreConflictError as e:
            raise StoreConflictError(f"Collection '{spec.name}' already exists") from e
        if spec.partition_key_field is not None:
            with self._errors(spec.name):
                self._db[spec.name].create_index(spec.partition_key_field)
        logger.debug("Created Mongo collection %s", spec.name)
        return spec

    def delete_collection(self, name: str) -> None:
        with self._errors(name):
            result = self._meta.delete_one({"_id": name})
            if result.deleted_count == 0:
                raise CollectionNotFoundError(name)
            self._db.drop_collection(name)

    def _require(self, name: str) -> tuple[Collection[Any], CollectionSpec]:
        spec = self.read_collection(name)
        if spec is None:
            raise CollectionNotFoundError(name)
        return self._db[name], spec

    # -- queries -------------------------------------------------------------

    def query(self, collection: str, native: NativeQuery) -> FeedPage:
        statement = parse(native.text)
        bindings = native.bindings
        unbound = statement.parameter_names() - bindings.keys()
        if unbound:
            raise StoreBadRequestError(
                f"Unbound query parameters: {', '.join(sorted(unbound))}"
            )
        coll, spec = self._require(collection)
        builder = MongoQueryBuilder(bindings)

        clauses = []
        match = builder.build_match(statement.where)
        if match:
            clauses.append(match)
        if native.partition_key is not None and spec.partition_key_field is not None:
            clauses.append({spec.partition_key_field: native.partition_key})

        if statement.count:
            with self._errors(collection):
                total = coll.count_documents(_all_of(clauses))
            return FeedPage([total])

        fingerprint = tokens.fingerprint(native)
        served = 0
        if native.continuation:
            resume = tokens.decode(native.continuation, fingerprint)
            served = resume.served
            clauses.append(builder.build_seek(statement.order_by, resume.position))

        remaining = None if statement.top is None else statement.top - served
        if remaining is not None and remaining <= 0:
            return FeedPage([])
        size = native.max_item_count
        fetch = size + 1 if size is not None else None
        if remaining is not None:
            fetch = remaining if fetch is None else min(fetch, remaining)

        logger.debug("Mongo find on %s: %s", collection, clauses)
        with self._errors(collection):
            cursor = coll.find(_all_of(clauses)).sort(builder.build_sort(statement.order_by))
            if fetch is not None:
                cursor = cursor.limit(fetch)
            documents = [_from_mongo(doc) for doc in cursor]

        if size is None or len(documents) <= size:
            return FeedPage(documents)
        page = documents[:size]
        token = tokens.encode(
            fingerprint,
            Evaluator.position(statement.order_by, page[-1]),
            served + len(page),
        )
        return FeedPage(page, token)

    # -- items ---------------------------------------------------------------

    def read_item(
        self, collection: str, item_id: str, partition_key: Any = None
    ) -> dict[str, Any] | None:
        coll, spec = self._require(collection)
        with self._errors(collection, item_id):
            doc = coll.find_one(_item_filter(spec, item_id, partition_key))
        return _from_mongo(doc) if doc is not None else None

    def create_item(self, collection: str, document: dict[str, Any]) -> dict[str, Any]:
        coll, _ = self._require(collection)
        stored = _to_mongo(document)
        with self._errors(collection, stored["_id"]):
            coll.insert_one(stored)
        return _from_mongo(stored)

    def upsert_item(self, collection: str, document: dict[str, Any]) -> dict[str, Any]:
        coll, _ = self._require(collection)
        stored = _to_mongo(document)
        with self._errors(collection, stored["_id"]):
            coll.replace_one({"_id": stored["_id"]}, stored, upsert=True)
        return _from_mongo(stored)

    def delete_item(self, collection: str, item_id: str, partition_key: Any = None) -> None:
        coll, spec = self._require(collection)
        with self._errors(collection, item_id):
            result = coll.delete_one(_item_filter(spec, item_id, partition_key))
        if result.deleted_count == 0:
            raise StoreNotFoundError(f"Item '{item_id}' not found in '{collection}'")


def _all_of(clauses: list[dict[str, Any]]) -> dict[str, Any]:
    if not clauses:
        return {}
    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


def _item_filter(spec: CollectionSpec, item_id: str, partition_key: Any) -> dict[str, Any]:
    flt: dict[str, Any] = {"_id": item_id}
    if partition_key is not None and spec.partition_key_field is not None:
        flt[spec.partition_key_field] = partition_key
    return flt


def _to_mongo(document: dict[str, Any]) -> dict[str, Any]:
    item_id = document.get("id")
    if not isinstance(item_id, str) or not item_id:
        raise StoreBadRequestError("Document must carry a non-empty string 'id'")
    stored = {k: v for k, v in document.items() if k != "id"}
    stored["_id"] = item_id
    stored["_ts"] = int(time.time())
    stored["_etag"] = uuid.uuid4().hex
    return stored


def _from_mongo(document: dict[str, Any]) -> dict[str, Any]:
    result = {k: v for k, v in document.items() if k != "_id"}
    result["id"] = document["_id"]
    return result

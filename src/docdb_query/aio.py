"""
AsyncDocumentOperations: non-blocking adapter over :class:`DocumentOperations`.

Each call returns an :class:`asyncio.Future` immediately and runs the
blocking operation on a thread pool. Cancelling the future stops delivery of
the result; a store call already in flight runs to completion.

Usage::

    aops = AsyncDocumentOperations(DocumentOperations(store))
    person = await aops.find_by_id(Person, "1")

    # All matches at once, or streamed page by page
    people = await aops.search(query, Person)
    async for person in aops.search(query, Person).stream(batch_size=50):
        ...
"""

from __future__ import annotations

import asyncio
import functools
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, Any, Callable, TypeVar

from .pagination import PageCursor, as_cursor
from .ports.search_result import SearchResult

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable
    from concurrent.futures import Executor

    from pydantic import BaseModel

    from .execution import ResultShape
    from .operations import DocumentOperations
    from .pagination import Page, PageRequest
    from .ports.store import CollectionSpec
    from .query import DocumentQuery

T = TypeVar("T", bound="BaseModel")
R = TypeVar("R")


class AsyncDocumentOperations:
    """Future-returning counterpart of every :class:`DocumentOperations` call."""

    def __init__(
        self,
        operations: DocumentOperations,
        *,
        executor: Executor | None = None,
    ) -> None:
        self._ops = operations
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=operations.config.max_workers,
            thread_name_prefix="docdb-query",
        )

    @property
    def operations(self) -> DocumentOperations:
        return self._ops

    def _submit(self, fn: Callable[..., R], *args: Any, **kwargs: Any) -> asyncio.Future[R]:
        loop = asyncio.get_running_loop()
        return loop.run_in_executor(self._executor, functools.partial(fn, *args, **kwargs))

    # -- lifecycle -----------------------------------------------------------

    def close(self, *, wait: bool = True) -> None:
        """
        Shut down the thread pool if this adapter created it.

        With ``wait=True`` this blocks until in-flight calls finish and the
        worker threads are joined.
        """
        if self._owns_executor:
            self._executor.shutdown(wait=wait)

    async def aclose(self) -> None:
        """Shut down the thread pool without blocking the event loop."""
        if self._owns_executor:
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, functools.partial(self._executor.shutdown, wait=True))

    async def __aenter__(self) -> AsyncDocumentOperations:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # -- collections ---------------------------------------------------------

    def ensure_collection(self, target: CollectionSpec | type) -> asyncio.Future[CollectionSpec]:
        return self._submit(self._ops.ensure_collection, target)

    def delete_collection(self, target: str | type) -> asyncio.Future[None]:
        return self._submit(self._ops.delete_collection, target)

    # -- point operations ----------------------------------------------------

    def find_by_id(
        self,
        entity_type: type[T],
        item_id: Any,
        *,
        partition_key: Any = None,
        collection: str | None = None,
    ) -> asyncio.Future[T | None]:
        return self._submit(
            self._ops.find_by_id,
            entity_type,
            item_id,
            partition_key=partition_key,
            collection=collection,
        )

    def insert(
        self, entity: T, *, partition_key: Any = None, collection: str | None = None
    ) -> asyncio.Future[T]:
        return self._submit(
            self._ops.insert, entity, partition_key=partition_key, collection=collection
        )

    def upsert(
        self, entity: T, *, partition_key: Any = None, collection: str | None = None
    ) -> asyncio.Future[T]:
        return self._submit(
            self._ops.upsert, entity, partition_key=partition_key, collection=collection
        )

    def delete_by_id(
        self,
        entity_type: type,
        item_id: Any,
        *,
        partition_key: Any = None,
        collection: str | None = None,
    ) -> asyncio.Future[None]:
        return self._submit(
            self._ops.delete_by_id,
            entity_type,
            item_id,
            partition_key=partition_key,
            collection=collection,
        )

    # -- queries -------------------------------------------------------------

    def find_all(
        self,
        entity_type: type[T],
        *,
        partition_key: Any = None,
        collection: str | None = None,
    ) -> asyncio.Future[list[T]]:
        return self._submit(
            self._ops.find_all,
            entity_type,
            partition_key=partition_key,
            collection=collection,
        )

    def find_by_ids(
        self, entity_type: type[T], ids: Iterable[Any], *, collection: str | None = None
    ) -> asyncio.Future[list[T]]:
        return self._submit(self._ops.find_by_ids, entity_type, list(ids), collection=collection)

    def find(
        self, query: DocumentQuery, entity_type: type[T], *, collection: str | None = None
    ) -> asyncio.Future[list[T]]:
        return self._submit(self._ops.find, query, entity_type, collection=collection)

    def find_one(
        self, query: DocumentQuery, entity_type: type[T], *, collection: str | None = None
    ) -> asyncio.Future[T | None]:
        return self._submit(self._ops.find_one, query, entity_type, collection=collection)

    def exists(
        self, query: DocumentQuery, entity_type: type, *, collection: str | None = None
    ) -> asyncio.Future[bool]:
        return self._submit(self._ops.exists, query, entity_type, collection=collection)

    def count(self, entity_type: type, *, collection: str | None = None) -> asyncio.Future[int]:
        return self._submit(self._ops.count, entity_type, collection=collection)

    def count_matching(
        self, query: DocumentQuery, entity_type: type, *, collection: str | None = None
    ) -> asyncio.Future[int]:
        return self._submit(self._ops.count_matching, query, entity_type, collection=collection)

    def find_page(
        self, query: DocumentQuery, entity_type: type[T], *, collection: str | None = None
    ) -> asyncio.Future[Page[T]]:
        """
        Fetch one page.

        The page request is validated before the future is created, so an
        unservable request raises here rather than from the future.
        """
        if query.page is not None:
            as_cursor(query.page)
        return self._submit(self._ops.find_page, query, entity_type, collection=collection)

    def find_all_page(
        self,
        entity_type: type[T],
        page_request: PageRequest | None = None,
        *,
        partition_key: Any = None,
        collection: str | None = None,
    ) -> asyncio.Future[Page[T]]:
        if page_request is not None:
            as_cursor(page_request)
        return self._submit(
            self._ops.find_all_page,
            entity_type,
            page_request,
            partition_key=partition_key,
            collection=collection,
        )

    def delete(
        self, query: DocumentQuery, entity_type: type[T], *, collection: str | None = None
    ) -> asyncio.Future[list[T]]:
        return self._submit(self._ops.delete, query, entity_type, collection=collection)

    def delete_all(
        self, entity_type: type, *, collection: str | None = None
    ) -> asyncio.Future[None]:
        return self._submit(self._ops.delete_all, entity_type, collection=collection)

    def execute(
        self,
        query: DocumentQuery,
        entity_type: type,
        shape: ResultShape | str = "list",
        *,
        delete: bool = False,
        collection: str | None = None,
    ) -> asyncio.Future[Any]:
        return self._submit(
            self._ops.execute,
            query,
            entity_type,
            shape,
            delete=delete,
            collection=collection,
        )

    # -- streaming -----------------------------------------------------------

    async def pages(
        self,
        query: DocumentQuery,
        entity_type: type[T],
        *,
        page_size: int | None = None,
        collection: str | None = None,
    ) -> AsyncIterator[Page[T]]:
        """
        Yield pages until the store stops issuing continuation tokens.

        Starts from ``query.page`` when present, otherwise from a first-page
        cursor of ``page_size`` (or the configured default).
        """
        cursor: PageCursor | None
        if query.page is not None:
            cursor = as_cursor(query.page)
        else:
            cursor = PageCursor(size=page_size or self._ops.config.default_page_size)
        while cursor is not None:
            page = await self.find_page(query.with_page(cursor), entity_type, collection=collection)
            yield page
            cursor = page.next_cursor

    def search(
        self, query: DocumentQuery, entity_type: type[T], *, collection: str | None = None
    ) -> SearchResult[T]:
        """Deferred result: ``await`` it for a list, or walk its pages."""
        unpaged = query.with_sort(query.effective_sort).with_page(None)

        def fetch_all() -> asyncio.Future[list[T]]:
            return self.find(query, entity_type, collection=collection)

        def fetch_pages(page_size: int | None) -> AsyncIterator[Page[T]]:
            return self.pages(unpaged, entity_type, page_size=page_size, collection=collection)

        return SearchResult(fetch_all, fetch_pages)

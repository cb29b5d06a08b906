"""
SearchResult: deferred query result, awaited as a list or walked page by page.

Usage::

    people = await aops.search(query, Person)

    async for page in aops.search(query, Person).pages(page_size=100):
        print(len(page), page.has_next)

    async for person in aops.search(query, Person).stream(batch_size=100):
        process(person)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, TypeVar

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable, Generator

    from ..pagination import Page

T = TypeVar("T")


class SearchResult(Generic[T]):
    """
    Result of a search that has not reached the store yet.

    ``await`` it for every match, :meth:`pages` for one :class:`Page` per
    continuation round-trip, or :meth:`stream` for the entities of those
    pages one at a time.
    """

    __slots__ = ("_fetch_all", "_fetch_pages")

    def __init__(
        self,
        fetch_all: Callable[[], Awaitable[list[T]]],
        fetch_pages: Callable[[int | None], AsyncIterator[Page[T]]],
    ) -> None:
        self._fetch_all = fetch_all
        self._fetch_pages = fetch_pages

    def __await__(self) -> Generator[Any, None, list[T]]:
        return self._fetch_all().__await__()

    def pages(self, *, page_size: int | None = None) -> AsyncIterator[Page[T]]:
        """Pages in sort order until the store stops issuing tokens."""
        return self._fetch_pages(page_size)

    async def stream(self, *, batch_size: int | None = None) -> AsyncIterator[T]:
        """
        Entities in sort order, fetched ``batch_size`` per round-trip.

        ``None`` uses the configured default page size.
        """
        async for page in self._fetch_pages(batch_size):
            for item in page:
                yield item

"""
Execution strategy dispatch.

A query plus the shape of result the caller wants selects exactly one
strategy. Strategies are stateless functions of
``(operations, query, entity_type, collection)``; all I/O goes through the
operations facade.

=========  =============================================================
shape      strategy
=========  =============================================================
single     first match (``TOP 1``) or ``None``
list       every match, following continuation tokens
boolean    existence probe (``TOP 1``, one-item page)
count      ``SELECT VALUE COUNT(1)``
page       one page; the next cursor wraps the store's token
delete     (intent flag) fetch matches, delete each, return them
=========  =============================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable

from .exceptions import InvalidPaginationStateError
from .pagination import ensure_servable

if TYPE_CHECKING:
    from .operations import DocumentOperations
    from .query import DocumentQuery

Strategy = Callable[["DocumentOperations", "DocumentQuery", type, "str | None"], Any]


class ResultShape(str, Enum):
    SINGLE = "single"
    LIST = "list"
    BOOLEAN = "boolean"
    COUNT = "count"
    PAGE = "page"


def single_entity(
    operations: DocumentOperations,
    query: DocumentQuery,
    entity_type: type,
    collection: str | None,
) -> Any:
    return operations.find_one(query, entity_type, collection=collection)


def list_all(
    operations: DocumentOperations,
    query: DocumentQuery,
    entity_type: type,
    collection: str | None,
) -> Any:
    return operations.find(query, entity_type, collection=collection)


def exists(
    operations: DocumentOperations,
    query: DocumentQuery,
    entity_type: type,
    collection: str | None,
) -> Any:
    return operations.exists(query, entity_type, collection=collection)


def count(
    operations: DocumentOperations,
    query: DocumentQuery,
    entity_type: type,
    collection: str | None,
) -> Any:
    return operations.count_matching(query, entity_type, collection=collection)


def delete_matching(
    operations: DocumentOperations,
    query: DocumentQuery,
    entity_type: type,
    collection: str | None,
) -> Any:
    return operations.delete(query, entity_type, collection=collection)


def paged_fetch(
    operations: DocumentOperations,
    query: DocumentQuery,
    entity_type: type,
    collection: str | None,
) -> Any:
    return operations.find_page(query, entity_type, collection=collection)


_STRATEGIES: dict[ResultShape, Strategy] = {
    ResultShape.SINGLE: single_entity,
    ResultShape.LIST: list_all,
    ResultShape.BOOLEAN: exists,
    ResultShape.COUNT: count,
    ResultShape.PAGE: paged_fetch,
}


@dataclass(frozen=True)
class QueryExecution:
    """A selected strategy. Holds no state beyond the choice itself."""

    shape: ResultShape
    strategy: Strategy
    delete: bool = False

    def execute(
        self,
        operations: DocumentOperations,
        query: DocumentQuery,
        entity_type: type,
        collection: str | None = None,
    ) -> Any:
        return self.strategy(operations, query, entity_type, collection)


def dispatch(
    query: DocumentQuery, shape: ResultShape | str, *, delete: bool = False
) -> QueryExecution:
    """
    Pick the strategy for ``query`` and the requested result ``shape``.

    A page-shaped request is validated here, before anything reaches the
    store: it must carry a page request, and a non-first page must carry
    the continuation token of the page before it.

    Raises:
        InvalidPaginationStateError: Page shape without a servable page.
    """
    shape = ResultShape(shape)
    if delete:
        return QueryExecution(shape, delete_matching, delete=True)
    if shape is ResultShape.PAGE:
        if query.page is None:
            raise InvalidPaginationStateError(
                "Paged execution requires a page request on the query"
            )
        ensure_servable(query.page)
    return QueryExecution(shape, _STRATEGIES[shape])

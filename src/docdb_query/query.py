"""
DocumentQuery: a criteria tree plus result-shaping parameters.

The criteria tree defines *what* to match; the query adds *how* results come
back (sort, page, limit) and *where* to look (partition key). Queries are
immutable; every ``with_*`` call returns a copy.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

from .criteria.nodes import Combinator, CriteriaNode
from .criteria.operators import CriteriaType
from .pagination import PageRequest
from .sort import Sort


@dataclass(frozen=True)
class DocumentQuery:
    """
    Immutable query value.

    Attributes:
        criteria: Root criteria node; ``None`` matches every document.
        sort: Ordering of results.
        page: Page request or cursor; ``None`` means "all results".
        limit: Upper bound on results (``TOP n``).
        partition_key: Restrict the query to one partition.
    """

    criteria: CriteriaNode | None = None
    sort: Sort = field(default_factory=Sort)
    page: PageRequest | None = None
    limit: int | None = None
    partition_key: Any = None

    def __post_init__(self) -> None:
        if self.limit is not None and self.limit <= 0:
            raise ValueError("limit must be greater than zero")

    def with_page(self, page: PageRequest | None) -> DocumentQuery:
        return replace(self, page=page)

    def with_sort(self, sort: Sort | str, *more: str) -> DocumentQuery:
        if isinstance(sort, str):
            sort = Sort.by(sort, *more)
        return replace(self, sort=sort)

    def with_limit(self, limit: int | None) -> DocumentQuery:
        return replace(self, limit=limit)

    def with_partition_key(self, partition_key: Any) -> DocumentQuery:
        return replace(self, partition_key=partition_key)

    def with_criteria(self, criteria: CriteriaNode | None) -> DocumentQuery:
        return replace(self, criteria=criteria)

    def merge(self, other: DocumentQuery) -> DocumentQuery:
        """
        Merge two queries.

        - Criteria are combined with AND.
        - ``other``'s page / limit / partition key override ``self``'s if set.
        - Sorts are concatenated (``other`` appended).
        """
        merged: CriteriaNode | None = self.criteria
        if other.criteria is not None:
            merged = (
                other.criteria
                if merged is None
                else Combinator(CriteriaType.AND, merged, other.criteria)
            )
        return DocumentQuery(
            criteria=merged,
            sort=self.sort.and_then(other.sort),
            page=other.page if other.page is not None else self.page,
            limit=other.limit if other.limit is not None else self.limit,
            partition_key=(
                other.partition_key
                if other.partition_key is not None
                else self.partition_key
            ),
        )

    @property
    def effective_sort(self) -> Sort:
        """The page sort when paging with one, otherwise the query sort."""
        if self.page is not None and self.page.sort:
            return self.page.sort
        return self.sort

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.criteria is not None:
            result["criteria"] = self.criteria.to_dict()
        if self.sort:
            result["sort"] = self.sort.to_list()
        if self.page is not None:
            result["page"] = {
                "index": self.page.index,
                "size": self.page.size,
                "continuation": self.page.continuation,
            }
        if self.limit is not None:
            result["limit"] = self.limit
        if self.partition_key is not None:
            result["partition_key"] = self.partition_key
        return result

"""Native query value handed to store clients."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any


@dataclass(frozen=True)
class QueryParameter:
    """A bound ``@name`` parameter of a native query."""

    name: str
    value: Any

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "value": self.value}


@dataclass(frozen=True)
class NativeQuery:
    """
    Translator output, consumed immediately by a store client.

    Attributes:
        text: Statement in the store's SQL dialect.
        parameters: Bound parameters in emission order.
        max_item_count: Page size; ``None`` asks the store for every match.
        continuation: Opaque token from the previous page, passed through
            untouched. Only the store that issued it can interpret it.
        partition_key: Route the query to one partition, or ``None`` for a
            cross-partition query.
    """

    text: str
    parameters: tuple[QueryParameter, ...] = field(default=())
    max_item_count: int | None = None
    continuation: str | None = None
    partition_key: Any = None

    @property
    def values(self) -> list[Any]:
        return [p.value for p in self.parameters]

    @property
    def bindings(self) -> dict[str, Any]:
        return {p.name: p.value for p in self.parameters}

    def parameter_dicts(self) -> list[dict[str, Any]]:
        """Parameters in the ``[{"name": ..., "value": ...}]`` wire form."""
        return [p.to_dict() for p in self.parameters]

    def with_page(self, max_item_count: int | None, continuation: str | None) -> NativeQuery:
        return replace(self, max_item_count=max_item_count, continuation=continuation)

"""
Continuation-token pagination.

A pagination sequence moves through three states::

    FIRST ──(token)──▶ CONTINUING ──(token)──▶ CONTINUING ...
      │                    │
      └────(no token)──────┴──────────────────▶ EXHAUSTED

``PageRequest`` is a plain (index, size, sort) request and is only servable
for the first page. ``PageCursor`` refines it with the opaque continuation
token the store issued for the previous page; it is the only way to ask for
a later page. Every ``Page`` carries the cursor for the next call, or
``None`` once the store stops issuing tokens.

All pagination state lives in these caller-owned values. Nothing is kept
between calls, so independent sequences never interfere.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Generic, TypeVar

from .exceptions import InvalidPaginationStateError
from .sort import Sort

if TYPE_CHECKING:
    from collections.abc import Iterator

T = TypeVar("T")


class CursorState(str, Enum):
    FIRST = "first"
    CONTINUING = "continuing"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class PageRequest:
    """Offset-style page request: index (0-based), size and sort."""

    index: int = 0
    size: int = 100
    sort: Sort = field(default_factory=Sort)

    def __post_init__(self) -> None:
        if self.index < 0:
            raise ValueError("Page index must not be negative")
        if self.size <= 0:
            raise ValueError("Page size must be greater than zero")

    @property
    def continuation(self) -> str | None:
        return None

    @property
    def state(self) -> CursorState:
        return CursorState.FIRST if self.index == 0 else CursorState.CONTINUING

    def first(self) -> PageCursor:
        """Return a cursor for the first page with the same size and sort."""
        return PageCursor(index=0, size=self.size, sort=self.sort)


@dataclass(frozen=True)
class PageCursor(PageRequest):
    """
    Page request carrying the store's continuation token.

    Raises:
        InvalidPaginationStateError: When ``index > 0`` and no token is given.
    """

    token: str | None = None

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.index > 0 and not self.token:
            raise InvalidPaginationStateError(
                f"Page {self.index} requested without a continuation token; "
                "non-first pages must use the cursor returned with the previous page",
                page_index=self.index,
                has_continuation=False,
            )

    @property
    def continuation(self) -> str | None:
        return self.token

    def next(self, token: str | None) -> PageCursor | None:
        """
        Advance the sequence.

        Returns the cursor for the following page, or ``None`` when the store
        issued no token (the sequence is exhausted).
        """
        if not token:
            return None
        return PageCursor(index=self.index + 1, size=self.size, sort=self.sort, token=token)


def ensure_servable(request: PageRequest) -> None:
    """
    Reject page requests that cannot be served from their own state.

    A non-first page needs the continuation token of the previous page. This
    check is local and runs before any store call.
    """
    if request.index > 0 and not request.continuation:
        raise InvalidPaginationStateError(
            f"Not the first page (index={request.index}) but no continuation "
            "token is present; the continuation token is required for a "
            "non-first page request",
            page_index=request.index,
            has_continuation=False,
        )


def as_cursor(request: PageRequest) -> PageCursor:
    """Validate ``request`` and view it as a :class:`PageCursor`."""
    ensure_servable(request)
    if isinstance(request, PageCursor):
        return request
    return PageCursor(index=request.index, size=request.size, sort=request.sort)


@dataclass(frozen=True)
class Page(Generic[T]):
    """
    One page of results.

    Attributes:
        items: Entities on this page, in sort order.
        request: The cursor that produced the page.
        next_cursor: Cursor for the following page, ``None`` when exhausted.
    """

    items: list[T]
    request: PageCursor
    next_cursor: PageCursor | None = None

    @property
    def has_next(self) -> bool:
        return self.next_cursor is not None

    @property
    def is_last(self) -> bool:
        return self.next_cursor is None

    @property
    def is_first(self) -> bool:
        return self.request.index == 0

    @property
    def state(self) -> CursorState:
        """State of the sequence after this page."""
        return CursorState.CONTINUING if self.has_next else CursorState.EXHAUSTED

    @property
    def number(self) -> int:
        return self.request.index

    @property
    def size(self) -> int:
        return self.request.size

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[T]:
        return iter(self.items)

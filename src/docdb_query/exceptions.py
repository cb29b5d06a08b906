"""
Exception hierarchy for docdb-query.

All exceptions inherit from ``DocumentDbError`` and provide
``to_dict()`` for API-friendly error responses.
"""

from __future__ import annotations

from difflib import get_close_matches
from typing import Any


class DocumentDbError(Exception):
    """Root exception for the whole package."""

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.__class__.__name__,
            "message": str(self),
        }


class QueryTranslationError(DocumentDbError):
    """
    A criteria node could not be translated to a native query.

    Raised for unsupported operators, value-arity mismatches and malformed
    subjects or values. Translation is all-or-nothing: no partial native
    query is ever returned alongside this error.
    """

    def __init__(
        self,
        message: str,
        *,
        operator: str | None = None,
        subject: str | None = None,
        suggestions: list[str] | None = None,
    ) -> None:
        self.message = message
        self.operator = operator
        self.subject = subject
        self.suggestions = suggestions or []
        super().__init__(message)

    @classmethod
    def unknown_operator(
        cls, operator: str, valid_operators: list[str], *, subject: str | None = None
    ) -> QueryTranslationError:
        """Build an error for an unknown operator name with fuzzy suggestions."""
        suggestions = get_close_matches(operator, valid_operators, n=3, cutoff=0.6)
        message = f"Unknown operator: '{operator}'."
        if suggestions:
            message += f" Did you mean: {', '.join(suggestions)}?"
        return cls(
            message, operator=operator, subject=subject, suggestions=suggestions
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "QUERY_TRANSLATION_ERROR",
            "message": self.message,
            "operator": self.operator,
            "subject": self.subject,
            "suggestions": self.suggestions,
        }


class InvalidPaginationStateError(DocumentDbError):
    """
    A page request cannot be served from its cursor state.

    Either a non-first page was requested without a continuation token, or
    the token does not belong to the query it was replayed against. Always
    detected before any store call.
    """

    def __init__(
        self,
        message: str,
        *,
        page_index: int | None = None,
        has_continuation: bool = False,
    ) -> None:
        self.message = message
        self.page_index = page_index
        self.has_continuation = has_continuation
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "INVALID_PAGINATION_STATE",
            "message": self.message,
            "page_index": self.page_index,
            "has_continuation": self.has_continuation,
        }


class DocumentConversionError(DocumentDbError):
    """An entity could not be written to, or read from, a store document."""


class PartitionKeyRequiredError(DocumentDbError):
    """A partitioned collection was addressed without a partition key."""

    def __init__(self, collection: str, partition_key_path: str) -> None:
        self.collection = collection
        self.partition_key_path = partition_key_path
        super().__init__(
            f"Collection '{collection}' is partitioned on "
            f"'{partition_key_path}'; a partition key is required"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "PARTITION_KEY_REQUIRED",
            "collection": self.collection,
            "partition_key_path": self.partition_key_path,
        }


# ── Store access errors ──────────────────────────────────────────────


class DocumentDbAccessError(DocumentDbError):
    """Base class for typed errors reported by a store client."""


class StoreConflictError(DocumentDbAccessError):
    """Duplicate id on insert, or a concurrent-write conflict."""

    def __init__(self, message: str, *, item_id: object = None) -> None:
        self.item_id = item_id
        super().__init__(message)


class StoreNotFoundError(DocumentDbAccessError):
    """The addressed item does not exist."""


class CollectionNotFoundError(StoreNotFoundError):
    """The addressed collection does not exist."""

    def __init__(self, collection: str) -> None:
        self.collection = collection
        super().__init__(f"Collection '{collection}' does not exist")


class StoreBadRequestError(DocumentDbAccessError):
    """The store rejected the native query (syntax or unsupported construct)."""


class SqlSyntaxError(StoreBadRequestError):
    """The native query text could not be tokenized or parsed."""

    def __init__(self, message: str, *, position: int | None = None) -> None:
        self.position = position
        if position is not None:
            message = f"{message} (at offset {position})"
        super().__init__(message)


class StoreThrottledError(DocumentDbAccessError):
    """The store is rate limiting requests."""


class StoreUnavailableError(DocumentDbAccessError):
    """Transport-level failure or timeout talking to the store."""

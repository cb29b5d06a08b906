"""
Translate criteria trees into the store's SQL dialect.

Walks the tree by recursive descent: combinators become parenthesised
``AND`` / ``OR`` expressions, leaves become one predicate each, following
this table (``r`` is the document alias)::

    is_equal                 r.s = @s0
    is_less_than ...         r.s < @s0   (<=, >, >=)
    between                  r.s BETWEEN @s0 AND @s1
    in                       r.s IN (@s0, @s1, ...)
    containing               CONTAINS(r.s, @s0)
    starting_with            STARTSWITH(r.s, @s0)
    ending_with              ENDSWITH(r.s, @s0)
    like                     r.s LIKE @s0
    exists                   IS_DEFINED(r.s)
    is_null                  IS_NULL(r.s)
    is_empty                 IS_EMPTY(r.s)
    regex                    RegexMatch(r.s, @s0)
    near                     ST_DISTANCE(r.s, @s0) <= @s1

``ignore_case`` wraps subject and values in ``LOWER()`` (regex passes an
``"i"`` modifier instead). ``negated`` wraps the predicate in ``NOT (...)``.

Translation is pure: no I/O, no shared state, same input same output.
"""

from __future__ import annotations

import json
import re
from typing import TYPE_CHECKING, Any

from pydantic_core import PydanticSerializationError

from ..criteria.nodes import Combinator, Leaf
from ..criteria.operators import (
    VALUE_ARITY,
    CriteriaType,
    Proximity,
    arity_matches,
    describe_arity,
)
from ..exceptions import QueryTranslationError
from ..mapping.converter import to_document_value
from .native import NativeQuery, QueryParameter

if TYPE_CHECKING:
    from ..criteria.nodes import CriteriaNode
    from ..query import DocumentQuery
    from ..sort import Sort

ALIAS = "r"

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Words that cannot appear as a bare ``r.<word>`` property name.
RESERVED_WORDS: frozenset[str] = frozenset(
    {
        "AND", "AS", "ASC", "BETWEEN", "BY", "DESC", "DISTINCT", "EXISTS",
        "FALSE", "FROM", "IN", "IS", "JOIN", "LIKE", "LIMIT", "NOT", "NULL",
        "OFFSET", "OR", "ORDER", "ROOT", "SELECT", "TOP", "TRUE",
        "UNDEFINED", "VALUE", "WHERE",
    }
)  # fmt: skip

_COMPARISON_SYMBOLS: dict[CriteriaType, str] = {
    CriteriaType.IS_EQUAL: "=",
    CriteriaType.IS_LESS_THAN: "<",
    CriteriaType.IS_LESS_THAN_OR_EQUAL: "<=",
    CriteriaType.IS_GREATER_THAN: ">",
    CriteriaType.IS_GREATER_THAN_OR_EQUAL: ">=",
}

_STRING_FUNCTIONS: dict[CriteriaType, str] = {
    CriteriaType.CONTAINING: "CONTAINS",
    CriteriaType.STARTING_WITH: "STARTSWITH",
    CriteriaType.ENDING_WITH: "ENDSWITH",
}

_PRESENCE_FUNCTIONS: dict[CriteriaType, str] = {
    CriteriaType.EXISTS: "IS_DEFINED",
    CriteriaType.IS_NULL: "IS_NULL",
    CriteriaType.IS_EMPTY: "IS_EMPTY",
}

# Operators whose values are never case-folded.
_NO_FOLD: frozenset[CriteriaType] = frozenset(
    {CriteriaType.REGEX, CriteriaType.NEAR, *_PRESENCE_FUNCTIONS}
)


def render_path(subject: str, *, operator: str | None = None) -> str:
    """
    Render a dot-path subject as a document property reference.

    ``address.city`` → ``r.address.city``; segments that are not plain
    identifiers, or are reserved words, use bracket notation
    (``r["zip-code"]``).
    """
    if not isinstance(subject, str) or not subject.strip():
        raise QueryTranslationError(
            "Subject must be a non-empty dot path", operator=operator, subject=subject
        )
    parts = [ALIAS]
    for segment in subject.split("."):
        if not segment:
            raise QueryTranslationError(
                f"Subject '{subject}' contains an empty path segment",
                operator=operator,
                subject=subject,
            )
        if _IDENTIFIER.match(segment) and segment.upper() not in RESERVED_WORDS:
            parts.append(f".{segment}")
        else:
            parts.append(f"[{json.dumps(segment)}]")
    return "".join(parts)


class _ParameterSink:
    """Collects bound parameters for one translation call."""

    def __init__(self) -> None:
        self.parameters: list[QueryParameter] = []
        self._counters: dict[str, int] = {}

    def bind(self, subject: str, value: Any) -> str:
        stem = re.sub(r"[^A-Za-z0-9_]", "_", subject)
        if not stem or stem[0].isdigit():
            stem = f"p{stem}"
        index = self._counters.get(stem, 0)
        self._counters[stem] = index + 1
        name = f"@{stem}{index}"
        self.parameters.append(QueryParameter(name, value))
        return name


class SqlQueryTranslator:
    """
    Compile :class:`DocumentQuery` values into :class:`NativeQuery` values.

    Instances hold no per-call state and are safe to share between threads.
    """

    def translate(self, query: DocumentQuery) -> NativeQuery:
        """Build the ``SELECT *`` statement for a query, with paging hints."""
        sink = _ParameterSink()
        where = self._where(query.criteria, sink)
        order_by = self._order_by(query.effective_sort)
        top = f"TOP {query.limit} " if query.limit is not None else ""
        text = f"SELECT {top}* FROM ROOT {ALIAS}{where}{order_by}"
        page = query.page
        return NativeQuery(
            text=text,
            parameters=tuple(sink.parameters),
            max_item_count=page.size if page is not None else None,
            continuation=page.continuation if page is not None else None,
            partition_key=query.partition_key,
        )

    def translate_count(self, query: DocumentQuery) -> NativeQuery:
        """Build a ``SELECT VALUE COUNT(1)`` statement. Sort and paging are dropped."""
        sink = _ParameterSink()
        where = self._where(query.criteria, sink)
        return NativeQuery(
            text=f"SELECT VALUE COUNT(1) FROM ROOT {ALIAS}{where}",
            parameters=tuple(sink.parameters),
            partition_key=query.partition_key,
        )

    def translate_exists(self, query: DocumentQuery) -> NativeQuery:
        """Build an existence probe: at most one document, one-item page."""
        sink = _ParameterSink()
        where = self._where(query.criteria, sink)
        return NativeQuery(
            text=f"SELECT TOP 1 * FROM ROOT {ALIAS}{where}",
            parameters=tuple(sink.parameters),
            max_item_count=1,
            partition_key=query.partition_key,
        )

    def translate_criteria(
        self, node: CriteriaNode
    ) -> tuple[str, tuple[QueryParameter, ...]]:
        """Translate a bare criteria tree to a filter expression and its parameters."""
        sink = _ParameterSink()
        text = self._node(node, sink)
        return text, tuple(sink.parameters)

    # -- statement parts -----------------------------------------------------

    def _where(self, node: CriteriaNode | None, sink: _ParameterSink) -> str:
        if node is None:
            return ""
        return f" WHERE {self._node(node, sink)}"

    def _order_by(self, sort: Sort) -> str:
        if not sort:
            return ""
        clauses = [
            f"{render_path(order.property, operator='order_by')} {order.direction.value}"
            for order in sort
        ]
        return " ORDER BY " + ", ".join(clauses)

    # -- recursive descent ---------------------------------------------------

    def _node(self, node: CriteriaNode, sink: _ParameterSink) -> str:
        if isinstance(node, Combinator):
            keyword = "AND" if node.op is CriteriaType.AND else "OR"
            left = self._node(node.left, sink)
            right = self._node(node.right, sink)
            return f"({left} {keyword} {right})"
        if isinstance(node, Leaf):
            predicate = self._leaf(node, sink)
            return f"NOT ({predicate})" if node.negated else predicate
        raise QueryTranslationError(
            f"Unsupported criteria node type: {type(node).__name__}"
        )

    def _leaf(self, node: Leaf, sink: _ParameterSink) -> str:
        op = node.op
        subject = node.subject
        if op not in VALUE_ARITY:
            raise QueryTranslationError.unknown_operator(
                op.value, [m.value for m in VALUE_ARITY], subject=subject
            )
        if not arity_matches(op, len(node.values)):
            raise QueryTranslationError(
                f"Operator '{op.value}' on '{subject}' expects "
                f"{describe_arity(op)}, got {len(node.values)}",
                operator=op.value,
                subject=subject,
            )

        path = render_path(subject, operator=op.value)
        fold = node.ignore_case and op not in _NO_FOLD
        if fold:
            self._require_strings(node)
        field = f"LOWER({path})" if fold else path

        def bind(value: Any) -> str:
            name = sink.bind(subject, self._stored_form(node, value))
            return f"LOWER({name})" if fold else name

        if op in _COMPARISON_SYMBOLS:
            return f"{field} {_COMPARISON_SYMBOLS[op]} {bind(node.values[0])}"
        if op is CriteriaType.BETWEEN:
            low, high = node.values
            return f"{field} BETWEEN {bind(low)} AND {bind(high)}"
        if op is CriteriaType.IN:
            items = ", ".join(bind(value) for value in node.values)
            return f"{field} IN ({items})"
        if op in _STRING_FUNCTIONS:
            self._require_strings(node)
            return f"{_STRING_FUNCTIONS[op]}({field}, {bind(node.values[0])})"
        if op is CriteriaType.LIKE:
            self._require_strings(node)
            return f"{field} LIKE {bind(node.values[0])}"
        if op in _PRESENCE_FUNCTIONS:
            return f"{_PRESENCE_FUNCTIONS[op]}({path})"
        if op is CriteriaType.REGEX:
            self._require_strings(node)
            args = [path, sink.bind(subject, node.values[0])]
            if node.ignore_case:
                args.append(sink.bind(subject, "i"))
            return f"RegexMatch({', '.join(args)})"
        if op is CriteriaType.NEAR:
            proximity = node.values[0]
            if not isinstance(proximity, Proximity):
                raise QueryTranslationError(
                    f"Operator 'near' on '{subject}' expects a Proximity value, "
                    f"got {type(proximity).__name__}",
                    operator=op.value,
                    subject=subject,
                )
            point = sink.bind(subject, proximity.to_geojson())
            distance = sink.bind(subject, proximity.max_distance)
            return f"ST_DISTANCE({path}, {point}) <= {distance}"

        raise QueryTranslationError(
            f"Operator '{op.value}' is not supported by the SQL dialect",
            operator=op.value,
            subject=subject,
        )

    @staticmethod
    def _stored_form(node: Leaf, value: Any) -> Any:
        try:
            return to_document_value(value)
        except PydanticSerializationError as e:
            raise QueryTranslationError(
                f"Value of type {type(value).__name__} on '{node.subject}' "
                "cannot be bound as a query parameter",
                operator=node.op.value,
                subject=node.subject,
            ) from e

    @staticmethod
    def _require_strings(node: Leaf) -> None:
        for value in node.values:
            if not isinstance(value, str):
                raise QueryTranslationError(
                    f"Operator '{node.op.value}' on '{node.subject}' requires "
                    f"string values, got {type(value).__name__}",
                    operator=node.op.value,
                    subject=node.subject,
                )

"""Mongo filter, sort and seek documents from a parsed native statement."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from ...exceptions import StoreBadRequestError
from ...sql.ast import (
    UNDEFINED,
    Between,
    Call,
    Compare,
    InList,
    Like,
    Literal,
    Logical,
    Not,
    Param,
    Path,
)
from ...sql.evaluator import (
    RANK_ARRAY,
    RANK_BOOL,
    RANK_NULL,
    RANK_OBJECT,
    RANK_UNDEFINED,
)
from .operators import (
    compile_comparison,
    compile_distance,
    compile_membership,
    compile_presence,
    compile_range,
    compile_regex,
    compile_string,
)

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from ...sql.ast import Expr, OrderItem


def field_name(path: Path) -> str:
    """Mongo field for a document path; the document id lives in ``_id``."""
    dotted = path.dotted
    return "_id" if dotted == "id" else dotted


def position_value(key: Sequence[Any]) -> Any:
    """Recover the raw value from a ``(rank, value)`` sort key."""
    rank, value = key
    if rank in (RANK_UNDEFINED, RANK_NULL):
        return None
    if rank == RANK_BOOL:
        return bool(value)
    if rank in (RANK_ARRAY, RANK_OBJECT):
        return json.loads(value)
    return value


def _equal(field: str, value: Any) -> dict[str, Any]:
    return {field: {"$eq": value}}


def _after(field: str, value: Any, descending: bool) -> dict[str, Any] | None:
    # Mongo sorts null and missing fields lowest.
    if value is None:
        return None if descending else {field: {"$ne": None}}
    if descending:
        return {"$or": [{field: {"$lt": value}}, {field: {"$eq": None}}]}
    return {field: {"$gt": value}}


class MongoQueryBuilder:
    """Compile parsed native statements into MongoDB query documents."""

    def __init__(self, parameters: Mapping[str, Any]) -> None:
        self._parameters = parameters

    def build_match(self, expr: Expr | None) -> dict[str, Any]:
        if expr is None:
            return {}
        return self._compile(expr)

    def build_sort(self, order_by: Sequence[OrderItem]) -> list[tuple[str, int]]:
        """Sort tuples for ``order_by`` with ``_id`` appended as the tie-break."""
        result = [(field_name(item.path), -1 if item.descending else 1) for item in order_by]
        if not any(name == "_id" for name, _ in result):
            result.append(("_id", 1))
        return result

    def build_seek(
        self, order_by: Sequence[OrderItem], position: Sequence[Sequence[Any]]
    ) -> dict[str, Any]:
        """
        Filter for documents sorting strictly after ``position``.

        ``position`` holds the ORDER BY keys of the last delivered document
        followed by its id key.
        """
        keys = [(field_name(item.path), item.descending) for item in order_by]
        keys.append(("_id", False))
        values = [position_value(key) for key in position]
        branches: list[dict[str, Any]] = []
        for i, (field, descending) in enumerate(keys):
            after = _after(field, values[i], descending)
            if after is None:
                continue
            prefix = [_equal(keys[j][0], values[j]) for j in range(i)]
            branches.append({"$and": [*prefix, after]} if prefix else after)
        return {"$or": branches}

    # -- expression walk -----------------------------------------------------

    def _compile(self, expr: Expr) -> dict[str, Any]:
        if isinstance(expr, Logical):
            key = "$and" if expr.op == "AND" else "$or"
            return {key: [self._compile(expr.left), self._compile(expr.right)]}
        if isinstance(expr, Not):
            return {"$nor": [self._compile(expr.operand)]}
        if isinstance(expr, Compare):
            return self._compile_compare(expr)
        if isinstance(expr, Between):
            field, folded = self._subject(expr.subject)
            return compile_range(
                field, self._value(expr.low), self._value(expr.high), ignore_case=folded
            )
        if isinstance(expr, InList):
            field, folded = self._subject(expr.subject)
            items = [self._value(item) for item in expr.items]
            return compile_membership(field, items, ignore_case=folded)
        if isinstance(expr, Like):
            field, folded = self._subject(expr.subject)
            result = compile_string(field, "LIKE", self._value(expr.pattern), ignore_case=folded)
            if result is not None:
                return result
        if isinstance(expr, Call):
            return self._compile_call(expr)
        raise StoreBadRequestError(f"Cannot run {type(expr).__name__} expression on MongoDB")

    def _compile_compare(self, expr: Compare) -> dict[str, Any]:
        left = expr.left
        if isinstance(left, Call) and left.name == "ST_DISTANCE" and expr.op in ("<", "<="):
            if len(left.args) != 2:
                raise StoreBadRequestError("ST_DISTANCE takes two arguments")
            field, _ = self._subject(left.args[0])
            return compile_distance(field, self._value(left.args[1]), self._value(expr.right))
        field, folded = self._subject(left)
        result = compile_comparison(field, expr.op, self._value(expr.right), ignore_case=folded)
        if result is None:
            raise StoreBadRequestError(f"Unsupported comparison operator '{expr.op}'")
        return result

    def _compile_call(self, expr: Call) -> dict[str, Any]:
        if not expr.args:
            raise StoreBadRequestError(f"{expr.name}() requires a property argument")
        field, folded = self._subject(expr.args[0])
        presence = compile_presence(field, expr.name)
        if presence is not None:
            return presence
        if expr.name == "REGEXMATCH":
            args = [self._value(arg) for arg in expr.args[1:]]
            return compile_regex(field, *args)
        if len(expr.args) == 2:
            result = compile_string(
                field, expr.name, self._value(expr.args[1]), ignore_case=folded
            )
            if result is not None:
                return result
        raise StoreBadRequestError(f"Function {expr.name}() is not supported on MongoDB")

    def _subject(self, expr: Expr) -> tuple[str, bool]:
        """Resolve the left-hand side to a field name and a case-folding flag."""
        if isinstance(expr, Path):
            return field_name(expr), False
        if isinstance(expr, Call) and expr.name == "LOWER" and len(expr.args) == 1:
            inner = expr.args[0]
            if isinstance(inner, Path):
                return field_name(inner), True
        raise StoreBadRequestError("Predicate subject must be a document property")

    def _value(self, expr: Expr) -> Any:
        if isinstance(expr, Call) and expr.name == "LOWER" and len(expr.args) == 1:
            return self._value(expr.args[0])
        if isinstance(expr, Param):
            if expr.name not in self._parameters:
                raise StoreBadRequestError(f"Parameter {expr.name} is not bound")
            return self._parameters[expr.name]
        if isinstance(expr, Literal) and expr.value is not UNDEFINED:
            return expr.value
        raise StoreBadRequestError("Predicate value must be a parameter or a literal")

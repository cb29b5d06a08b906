"""
In-memory evaluation of parsed native statements.

Follows the store's value semantics:

* a missing property evaluates to ``UNDEFINED``;
* comparing values of different JSON types, or anything with ``UNDEFINED``,
  yields ``UNDEFINED`` rather than ``False``;
* ``AND`` / ``OR`` / ``NOT`` are three-valued;
* a document is selected only when the filter is exactly ``True``.

Built-in functions are looked up in a :class:`FunctionRegistry`; new ones
are added with ``register()``.
"""

from __future__ import annotations

import json
import math
import re
from functools import cmp_to_key
from typing import TYPE_CHECKING, Any, Callable

from ..exceptions import StoreBadRequestError
from .ast import (
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

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from .ast import Expr, OrderItem

EARTH_RADIUS_METERS = 6_371_008.8

# Type ranks used for ORDER BY across mixed types.
RANK_UNDEFINED = 0
RANK_NULL = 1
RANK_BOOL = 2
RANK_NUMBER = 3
RANK_STRING = 4
RANK_ARRAY = 5
RANK_OBJECT = 6


def json_kind(value: Any) -> str:
    if value is UNDEFINED:
        return "undefined"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, dict):
        return "object"
    return "unknown"


def resolve_path(document: Mapping[str, Any], segments: Sequence[str]) -> Any:
    value: Any = document
    for segment in segments:
        if not isinstance(value, dict) or segment not in value:
            return UNDEFINED
        value = value[segment]
    return value


def sort_key(value: Any) -> tuple[int, Any]:
    """Totally ordered key for a JSON value (rank first, then value)."""
    kind = json_kind(value)
    if kind == "undefined":
        return (RANK_UNDEFINED, 0)
    if kind == "null":
        return (RANK_NULL, 0)
    if kind == "boolean":
        return (RANK_BOOL, int(value))
    if kind == "number":
        return (RANK_NUMBER, value)
    if kind == "string":
        return (RANK_STRING, value)
    if kind == "array":
        return (RANK_ARRAY, json.dumps(value, sort_keys=True, default=str))
    return (RANK_OBJECT, json.dumps(value, sort_keys=True, default=str))


def compare_keys(
    left: Sequence[tuple[int, Any]],
    right: Sequence[tuple[int, Any]],
    descending: Sequence[bool],
) -> int:
    """Compare two composite sort keys; ``-1`` when ``left`` sorts first."""
    for a, b, desc in zip(left, right, descending):
        if a == b:
            continue
        result = -1 if a < b else 1
        return -result if desc else result
    return 0


# -- three-valued helpers ----------------------------------------------------


def _compare(op: str, left: Any, right: Any) -> Any:
    if left is UNDEFINED or right is UNDEFINED:
        return UNDEFINED
    kind = json_kind(left)
    if kind != json_kind(right) or kind == "unknown":
        return UNDEFINED
    if op == "=":
        return left == right
    if op == "!=":
        return left != right
    if kind not in ("number", "string", "boolean"):
        return UNDEFINED
    if op == "<":
        return left < right
    if op == "<=":
        return left <= right
    if op == ">":
        return left > right
    if op == ">=":
        return left >= right
    raise StoreBadRequestError(f"Unknown comparison operator '{op}'")


def _and(left: Any, right: Any) -> Any:
    if left is False or right is False:
        return False
    if left is True and right is True:
        return True
    return UNDEFINED


def _or(left: Any, right: Any) -> Any:
    if left is True or right is True:
        return True
    if left is False and right is False:
        return False
    return UNDEFINED


def _not(value: Any) -> Any:
    if isinstance(value, bool):
        return not value
    return UNDEFINED


def like_to_regex(pattern: str) -> re.Pattern[str]:
    """Translate a LIKE pattern (``%`` any run, ``_`` one char) to a regex."""
    parts = []
    for ch in pattern:
        if ch == "%":
            parts.append(".*")
        elif ch == "_":
            parts.append(".")
        else:
            parts.append(re.escape(ch))
    return re.compile("".join(parts), re.DOTALL)


# -- built-in functions ------------------------------------------------------


def _strings(*values: Any) -> bool:
    return all(isinstance(v, str) for v in values)


def _fn_is_defined(value: Any) -> Any:
    return value is not UNDEFINED


def _fn_is_null(value: Any) -> Any:
    return value is None


def _fn_is_empty(value: Any) -> Any:
    return value is UNDEFINED or value is None or value in ("", [], {})


def _fn_lower(value: Any) -> Any:
    return value.lower() if isinstance(value, str) else UNDEFINED


def _fn_upper(value: Any) -> Any:
    return value.upper() if isinstance(value, str) else UNDEFINED


def _fn_contains(value: Any, fragment: Any) -> Any:
    return fragment in value if _strings(value, fragment) else UNDEFINED


def _fn_startswith(value: Any, prefix: Any) -> Any:
    return value.startswith(prefix) if _strings(value, prefix) else UNDEFINED


def _fn_endswith(value: Any, suffix: Any) -> Any:
    return value.endswith(suffix) if _strings(value, suffix) else UNDEFINED


_REGEX_FLAGS = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL, "x": re.VERBOSE}


def _fn_regex_match(value: Any, pattern: Any, modifiers: Any = "") -> Any:
    if not _strings(value, pattern, modifiers):
        return UNDEFINED
    flags = 0
    for ch in modifiers:
        if ch not in _REGEX_FLAGS:
            raise StoreBadRequestError(f"Unsupported regex modifier '{ch}'")
        flags |= _REGEX_FLAGS[ch]
    try:
        return re.search(pattern, value, flags) is not None
    except re.error as e:
        raise StoreBadRequestError(f"Invalid regular expression {pattern!r}: {e}") from e


def _point(value: Any) -> tuple[float, float] | None:
    if not isinstance(value, dict) or value.get("type") != "Point":
        return None
    coordinates = value.get("coordinates")
    if not isinstance(coordinates, (list, tuple)) or len(coordinates) < 2:
        return None
    return float(coordinates[0]), float(coordinates[1])


def haversine(a: tuple[float, float], b: tuple[float, float]) -> float:
    """Great-circle distance in metres between two (lon, lat) points."""
    lon1, lat1 = map(math.radians, a)
    lon2, lat2 = map(math.radians, b)
    h = (
        math.sin((lat2 - lat1) / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin((lon2 - lon1) / 2) ** 2
    )
    return 2 * EARTH_RADIUS_METERS * math.asin(min(1.0, math.sqrt(h)))


def _fn_st_distance(left: Any, right: Any) -> Any:
    a, b = _point(left), _point(right)
    if a is None or b is None:
        return UNDEFINED
    return haversine(a, b)


class FunctionRegistry:
    """
    Registry of scalar functions callable from native statements.

    Usage::

        registry = FunctionRegistry.default()
        registry.register("LENGTH", lambda s: len(s) if isinstance(s, str) else UNDEFINED)
    """

    def __init__(self) -> None:
        self._functions: dict[str, Callable[..., Any]] = {}

    def register(self, name: str, fn: Callable[..., Any]) -> None:
        self._functions[name.upper()] = fn

    def has(self, name: str) -> bool:
        return name.upper() in self._functions

    def call(self, name: str, args: Sequence[Any]) -> Any:
        fn = self._functions.get(name.upper())
        if fn is None:
            raise StoreBadRequestError(f"Unknown function '{name}'")
        try:
            return fn(*args)
        except TypeError as e:
            raise StoreBadRequestError(f"Bad arguments to {name}(): {e}") from e

    @classmethod
    def default(cls) -> FunctionRegistry:
        registry = cls()
        registry.register("IS_DEFINED", _fn_is_defined)
        registry.register("IS_NULL", _fn_is_null)
        registry.register("IS_EMPTY", _fn_is_empty)
        registry.register("LOWER", _fn_lower)
        registry.register("UPPER", _fn_upper)
        registry.register("CONTAINS", _fn_contains)
        registry.register("STARTSWITH", _fn_startswith)
        registry.register("ENDSWITH", _fn_endswith)
        registry.register("REGEXMATCH", _fn_regex_match)
        registry.register("ST_DISTANCE", _fn_st_distance)
        return registry


class Evaluator:
    """Evaluate expressions of one statement against documents."""

    def __init__(
        self,
        parameters: Mapping[str, Any],
        functions: FunctionRegistry | None = None,
    ) -> None:
        self._parameters = parameters
        self._functions = functions or FunctionRegistry.default()

    def matches(self, expr: Expr | None, document: Mapping[str, Any]) -> bool:
        if expr is None:
            return True
        return self.evaluate(expr, document) is True

    def evaluate(self, expr: Expr, document: Mapping[str, Any]) -> Any:
        if isinstance(expr, Path):
            return resolve_path(document, expr.segments)
        if isinstance(expr, Literal):
            return expr.value
        if isinstance(expr, Param):
            if expr.name not in self._parameters:
                raise StoreBadRequestError(f"Parameter {expr.name} is not bound")
            return self._parameters[expr.name]
        if isinstance(expr, Logical):
            left = self.evaluate(expr.left, document)
            right = self.evaluate(expr.right, document)
            return _and(left, right) if expr.op == "AND" else _or(left, right)
        if isinstance(expr, Not):
            return _not(self.evaluate(expr.operand, document))
        if isinstance(expr, Compare):
            return _compare(
                expr.op,
                self.evaluate(expr.left, document),
                self.evaluate(expr.right, document),
            )
        if isinstance(expr, Between):
            value = self.evaluate(expr.subject, document)
            low = _compare(">=", value, self.evaluate(expr.low, document))
            high = _compare("<=", value, self.evaluate(expr.high, document))
            return _and(low, high)
        if isinstance(expr, InList):
            value = self.evaluate(expr.subject, document)
            if value is UNDEFINED:
                return UNDEFINED
            return any(
                _compare("=", value, self.evaluate(item, document)) is True
                for item in expr.items
            )
        if isinstance(expr, Like):
            value = self.evaluate(expr.subject, document)
            pattern = self.evaluate(expr.pattern, document)
            if not _strings(value, pattern):
                return UNDEFINED
            return like_to_regex(pattern).fullmatch(value) is not None
        if isinstance(expr, Call):
            args = [self.evaluate(arg, document) for arg in expr.args]
            return self._functions.call(expr.name, args)
        raise StoreBadRequestError(f"Unsupported expression: {type(expr).__name__}")

    @staticmethod
    def position(
        order_by: Sequence[OrderItem], document: Mapping[str, Any]
    ) -> list[tuple[int, Any]]:
        """Sort position of a document: ORDER BY keys, then ``id`` as tie-break."""
        keys = [sort_key(resolve_path(document, item.path.segments)) for item in order_by]
        keys.append(sort_key(document.get("id", UNDEFINED)))
        return keys

    @staticmethod
    def descending(order_by: Sequence[OrderItem]) -> list[bool]:
        return [item.descending for item in order_by] + [False]

    def sort(
        self, order_by: Sequence[OrderItem], documents: list[dict[str, Any]]
    ) -> list[dict[str, Any]]:
        """Sort by the ORDER BY items, then by ``id`` so the order is total."""
        descending = self.descending(order_by)

        def compare(a: dict[str, Any], b: dict[str, Any]) -> int:
            return compare_keys(
                self.position(order_by, a), self.position(order_by, b), descending
            )

        return sorted(documents, key=cmp_to_key(compare))

"""
Per-family compilers from native predicates to MongoDB filter fragments.

Each compiler receives the resolved field name, the predicate's function or
operator name, its resolved argument values and the case-folding flag, and
returns a filter document or ``None`` when the predicate is not in its
family.
"""

from __future__ import annotations

import re
from typing import Any

from ...exceptions import StoreBadRequestError
from ...sql.evaluator import EARTH_RADIUS_METERS

_COMPARISON_MAP: dict[str, str] = {
    "=": "$eq",
    "!=": "$ne",
    "<": "$lt",
    "<=": "$lte",
    ">": "$gt",
    ">=": "$gte",
}


def _exact(value: str) -> str:
    return "^" + re.escape(value) + "$"


def compile_comparison(
    field: str, op: str, val: Any, *, ignore_case: bool = False
) -> dict[str, Any] | None:
    """Compile ``=``, ``!=``, ``<`` ... to ``$eq``, ``$ne``, ``$lt`` ..."""
    mongo_op = _COMPARISON_MAP.get(op)
    if mongo_op is None:
        return None
    if not ignore_case:
        return {field: {mongo_op: val}}
    if not isinstance(val, str):
        raise StoreBadRequestError(f"LOWER() comparison on {field} requires a string value")
    if op == "=":
        return {field: {"$regex": _exact(val), "$options": "i"}}
    if op == "!=":
        return {"$nor": [{field: {"$regex": _exact(val), "$options": "i"}}]}
    return {"$expr": {mongo_op: [{"$toLower": f"${field}"}, val.lower()]}}


def compile_range(
    field: str, low: Any, high: Any, *, ignore_case: bool = False
) -> dict[str, Any]:
    """Compile ``BETWEEN`` to an inclusive ``$gte`` / ``$lte`` pair."""
    if ignore_case:
        lowered = {"$toLower": f"${field}"}
        return {
            "$expr": {
                "$and": [
                    {"$gte": [lowered, str(low).lower()]},
                    {"$lte": [lowered, str(high).lower()]},
                ]
            }
        }
    return {"$and": [{field: {"$gte": low}}, {field: {"$lte": high}}]}


def compile_membership(
    field: str, items: list[Any], *, ignore_case: bool = False
) -> dict[str, Any]:
    """Compile ``IN (...)`` to ``$in``."""
    if ignore_case:
        return {"$or": [{field: {"$regex": _exact(str(v)), "$options": "i"}} for v in items]}
    return {field: {"$in": items}}


def compile_string(
    field: str, name: str, val: Any, *, ignore_case: bool = False
) -> dict[str, Any] | None:
    """Compile string functions and LIKE to ``$regex``. ``None`` if not a string op."""
    if name not in ("CONTAINS", "STARTSWITH", "ENDSWITH", "LIKE"):
        return None
    if not isinstance(val, str):
        raise StoreBadRequestError(f"String operator {name} requires a string value")
    options = "i" if ignore_case else ""
    if name == "CONTAINS":
        pattern = re.escape(val)
    elif name == "STARTSWITH":
        pattern = "^" + re.escape(val)
    elif name == "ENDSWITH":
        pattern = re.escape(val) + "$"
    else:
        # LIKE: % = any run, _ = single char
        pattern = "^" + "".join(
            ".*" if ch == "%" else "." if ch == "_" else re.escape(ch) for ch in val
        ) + "$"
    return {field: {"$regex": pattern, "$options": options}}


def compile_regex(field: str, pattern: Any, modifiers: Any = "") -> dict[str, Any]:
    if not isinstance(pattern, str) or not isinstance(modifiers, str):
        raise StoreBadRequestError("RegexMatch requires a string pattern and modifiers")
    return {field: {"$regex": pattern, "$options": modifiers}}


def compile_presence(field: str, name: str) -> dict[str, Any] | None:
    """Compile IS_DEFINED / IS_NULL / IS_EMPTY. ``None`` if not a presence check."""
    if name == "IS_DEFINED":
        return {field: {"$exists": True}}
    if name == "IS_NULL":
        return {"$and": [{field: {"$exists": True}}, {field: {"$eq": None}}]}
    if name == "IS_EMPTY":
        return {
            "$or": [
                {field: {"$exists": False}},
                {field: {"$eq": None}},
                {field: {"$eq": ""}},
                {field: {"$size": 0}},
                {field: {"$eq": {}}},
            ]
        }
    return None


def compile_distance(field: str, point: Any, max_distance: Any) -> dict[str, Any]:
    """Compile ``ST_DISTANCE(field, point) <= d`` to ``$geoWithin $centerSphere``."""
    if not isinstance(point, dict) or "coordinates" not in point:
        raise StoreBadRequestError("ST_DISTANCE requires a GeoJSON point")
    if not isinstance(max_distance, (int, float)):
        raise StoreBadRequestError("ST_DISTANCE requires a numeric distance")
    radians = float(max_distance) / EARTH_RADIUS_METERS
    return {field: {"$geoWithin": {"$centerSphere": [list(point["coordinates"]), radians]}}}

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class CriteriaType(str, Enum):
    """Supported node operators for criteria trees."""

    # Combinators
    AND = "and"
    OR = "or"

    # Comparison
    IS_EQUAL = "is_equal"
    IS_LESS_THAN = "is_less_than"
    IS_LESS_THAN_OR_EQUAL = "is_less_than_or_equal"
    IS_GREATER_THAN = "is_greater_than"
    IS_GREATER_THAN_OR_EQUAL = "is_greater_than_or_equal"
    BETWEEN = "between"
    IN = "in"

    # String / pattern
    CONTAINING = "containing"
    STARTING_WITH = "starting_with"
    ENDING_WITH = "ending_with"
    LIKE = "like"
    REGEX = "regex"

    # Presence
    EXISTS = "exists"
    IS_NULL = "is_null"
    IS_EMPTY = "is_empty"

    # Geospatial
    NEAR = "near"

    @property
    def is_combinator(self) -> bool:
        return self in _COMBINATORS


_COMBINATORS: frozenset[CriteriaType] = frozenset({CriteriaType.AND, CriteriaType.OR})

# ``None`` means "one or more".
VALUE_ARITY: dict[CriteriaType, int | None] = {
    CriteriaType.IS_EQUAL: 1,
    CriteriaType.IS_LESS_THAN: 1,
    CriteriaType.IS_LESS_THAN_OR_EQUAL: 1,
    CriteriaType.IS_GREATER_THAN: 1,
    CriteriaType.IS_GREATER_THAN_OR_EQUAL: 1,
    CriteriaType.BETWEEN: 2,
    CriteriaType.IN: None,
    CriteriaType.CONTAINING: 1,
    CriteriaType.STARTING_WITH: 1,
    CriteriaType.ENDING_WITH: 1,
    CriteriaType.LIKE: 1,
    CriteriaType.REGEX: 1,
    CriteriaType.EXISTS: 0,
    CriteriaType.IS_NULL: 0,
    CriteriaType.IS_EMPTY: 0,
    CriteriaType.NEAR: 1,
}

LEAF_OPERATORS: frozenset[CriteriaType] = frozenset(VALUE_ARITY)


def arity_matches(op: CriteriaType, count: int) -> bool:
    """Return True when ``count`` values are acceptable for ``op``."""
    if op not in VALUE_ARITY:
        return False
    expected = VALUE_ARITY[op]
    if expected is None:
        return count >= 1
    return count == expected


def describe_arity(op: CriteriaType) -> str:
    expected = VALUE_ARITY.get(op)
    if expected is None:
        return "at least 1 value"
    if expected == 1:
        return "exactly 1 value"
    return f"exactly {expected} values"


@dataclass(frozen=True)
class Proximity:
    """
    Value of a ``near`` leaf.

    Attributes:
        point: ``(longitude, latitude)`` of the centre.
        max_distance: Radius in meters.
    """

    point: tuple[float, float]
    max_distance: float

    def to_geojson(self) -> dict[str, object]:
        return {"type": "Point", "coordinates": [self.point[0], self.point[1]]}

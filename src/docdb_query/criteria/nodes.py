"""
Criteria tree nodes.

A criteria tree is a closed, two-family union: ``Combinator`` (AND / OR over
exactly two children) and ``Leaf`` (one operator applied to one subject).
Nodes are frozen dataclasses; composing two nodes always returns a new one.

Example::

    tree = leaf(CriteriaType.IS_EQUAL, "last_name", ["Smith"]) & leaf(
        CriteriaType.IS_GREATER_THAN, "age", [18]
    )
    # → Combinator(AND, last_name = Smith, age > 18)
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from typing import Any, Union

from ..exceptions import QueryTranslationError
from .operators import LEAF_OPERATORS, CriteriaType, Proximity


class _NodeOps:
    """Logical operator overloads shared by both node families."""

    def __and__(self, other: CriteriaNode) -> Combinator:
        return Combinator(CriteriaType.AND, self, other)  # type: ignore[arg-type]

    def __or__(self, other: CriteriaNode) -> Combinator:
        return Combinator(CriteriaType.OR, self, other)  # type: ignore[arg-type]


@dataclass(frozen=True)
class Combinator(_NodeOps):
    """AND / OR over exactly two child nodes."""

    op: CriteriaType
    left: CriteriaNode
    right: CriteriaNode

    def __post_init__(self) -> None:
        if not isinstance(self.op, CriteriaType):
            object.__setattr__(self, "op", CriteriaType(self.op))
        if not self.op.is_combinator:
            raise ValueError(f"'{self.op.value}' is not a combinator operator")

    def __invert__(self) -> Combinator:
        """Negate by De Morgan so that negation stays a per-leaf flag."""
        flipped = CriteriaType.OR if self.op is CriteriaType.AND else CriteriaType.AND
        return Combinator(flipped, ~self.left, ~self.right)

    def to_dict(self) -> dict[str, Any]:
        return {
            "op": self.op.value,
            "conditions": [self.left.to_dict(), self.right.to_dict()],
        }


@dataclass(frozen=True)
class Leaf(_NodeOps):
    """
    One operator applied to a dot-path subject.

    Value arity is checked by the translator, not here: a leaf with the wrong
    number of values can be built but never translated.
    """

    op: CriteriaType
    subject: str
    values: tuple[Any, ...] = field(default=())
    ignore_case: bool = False
    negated: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.op, CriteriaType):
            object.__setattr__(self, "op", CriteriaType(self.op))
        if self.op not in LEAF_OPERATORS:
            raise ValueError(f"'{self.op.value}' is not a leaf operator")
        if not isinstance(self.subject, str) or not self.subject.strip():
            raise ValueError("Leaf subject must be a non-empty string")
        if not isinstance(self.values, tuple):
            object.__setattr__(self, "values", tuple(self.values))

    def __invert__(self) -> Leaf:
        return replace(self, negated=not self.negated)

    def to_dict(self) -> dict[str, Any]:
        values = [
            {"point": list(v.point), "max_distance": v.max_distance}
            if isinstance(v, Proximity)
            else v
            for v in self.values
        ]
        return {
            "op": self.op.value,
            "subject": self.subject,
            "values": values,
            "ignore_case": self.ignore_case,
            "negated": self.negated,
        }


CriteriaNode = Union[Combinator, Leaf]


# -- construction helpers ----------------------------------------------------


def combine(op: CriteriaType | str, left: CriteriaNode, right: CriteriaNode) -> Combinator:
    """Join two nodes with AND or OR."""
    return Combinator(CriteriaType(op), left, right)


def and_(left: CriteriaNode, right: CriteriaNode) -> Combinator:
    return Combinator(CriteriaType.AND, left, right)


def or_(left: CriteriaNode, right: CriteriaNode) -> Combinator:
    return Combinator(CriteriaType.OR, left, right)


def leaf(
    op: CriteriaType | str,
    subject: str,
    values: Any = (),
    *,
    ignore_case: bool = False,
    negated: bool = False,
) -> Leaf:
    """Build a leaf. ``values`` may be any iterable; it is frozen into a tuple."""
    return Leaf(
        CriteriaType(op),
        subject,
        tuple(values),
        ignore_case=ignore_case,
        negated=negated,
    )


# -- (de)serialisation -------------------------------------------------------

_VALID_OPERATOR_NAMES: list[str] = [m.value for m in CriteriaType]


def criteria_from_dict(data: dict[str, Any], *, path: str = "<root>") -> CriteriaNode:
    """
    Rebuild a criteria tree from the structure produced by ``to_dict()``.

    Raises:
        QueryTranslationError: On unknown operators or malformed nodes.
    """
    if not isinstance(data, dict):
        raise QueryTranslationError(
            f"{path}: expected a dict, got {type(data).__name__}"
        )
    op_str = str(data.get("op", "")).lower()
    try:
        op = CriteriaType(op_str)
    except ValueError:
        raise QueryTranslationError.unknown_operator(
            op_str, _VALID_OPERATOR_NAMES, subject=data.get("subject")
        ) from None

    if op.is_combinator:
        conditions = data.get("conditions")
        if not isinstance(conditions, list) or len(conditions) != 2:
            raise QueryTranslationError(
                f"{path}: '{op.value}' requires exactly two conditions",
                operator=op.value,
            )
        return Combinator(
            op,
            criteria_from_dict(conditions[0], path=f"{path}.conditions[0]"),
            criteria_from_dict(conditions[1], path=f"{path}.conditions[1]"),
        )

    subject = data.get("subject")
    if not isinstance(subject, str) or not subject.strip():
        raise QueryTranslationError(
            f"{path}: leaf is missing 'subject'", operator=op.value
        )
    values = list(data.get("values") or [])
    if op is CriteriaType.NEAR:
        values = [_proximity_from(v, path=path) for v in values]
    return Leaf(
        op,
        subject,
        tuple(values),
        ignore_case=bool(data.get("ignore_case", False)),
        negated=bool(data.get("negated", False)),
    )


def criteria_from_json(text: str) -> CriteriaNode:
    """Parse a JSON string and rebuild the criteria tree."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise QueryTranslationError(f"Invalid JSON: {exc}") from exc
    return criteria_from_dict(data)


def _proximity_from(value: Any, *, path: str) -> Any:
    if isinstance(value, Proximity):
        return value
    if isinstance(value, dict) and "point" in value and "max_distance" in value:
        lon, lat = value["point"]
        return Proximity(point=(float(lon), float(lat)), max_distance=float(value["max_distance"]))
    raise QueryTranslationError(
        f"{path}: 'near' value must provide 'point' and 'max_distance'",
        operator=CriteriaType.NEAR.value,
    )

"""
Fluent builder for constructing criteria trees.

Example::

    tree = (
        CriteriaBuilder()
        .where("status", CriteriaType.IS_EQUAL, "active")
        .where("age", CriteriaType.IS_GREATER_THAN, 18)
        .build()
    )
    # → (status = active AND age > 18)

    tree = (
        CriteriaBuilder()
        .or_group()
            .where("role", "is_equal", "admin")
            .where("role", "is_equal", "owner")
        .end_group()
        .where("active", "is_equal", True)
        .build()
    )
    # → ((role = admin OR role = owner) AND active = True)

Groups with more than two members are folded left into nested binary
combinators, since every combinator has exactly two children.
"""

from __future__ import annotations

from functools import reduce
from typing import TYPE_CHECKING, Any

from .nodes import Combinator, Leaf
from .operators import VALUE_ARITY, CriteriaType

if TYPE_CHECKING:
    from .nodes import CriteriaNode


class CriteriaBuilder:
    """
    Fluent builder for composing criteria trees.

    Conditions added at the same level are combined with AND by default.
    Use ``or_group()`` / ``and_group()`` for explicit grouping and
    ``end_group()`` to close the current group.
    """

    def __init__(self) -> None:
        self._nodes: list[CriteriaNode] = []
        self._stack: list[tuple[CriteriaType, list[CriteriaNode]]] = []

    # -- leaf conditions -----------------------------------------------------

    def where(
        self,
        subject: str,
        op: CriteriaType | str,
        *values: Any,
        ignore_case: bool = False,
        negated: bool = False,
    ) -> CriteriaBuilder:
        """
        Add a single leaf condition to the current group.

        ``in`` accepts either several positional values or a single list.
        """
        criteria_type = CriteriaType(op)
        if (
            VALUE_ARITY.get(criteria_type, 0) is None
            and len(values) == 1
            and isinstance(values[0], (list, tuple, set, frozenset))
        ):
            values = tuple(values[0])
        self._current().append(
            Leaf(
                criteria_type,
                subject,
                tuple(values),
                ignore_case=ignore_case,
                negated=negated,
            )
        )
        return self

    def where_not(
        self, subject: str, op: CriteriaType | str, *values: Any, ignore_case: bool = False
    ) -> CriteriaBuilder:
        """Add a negated leaf condition to the current group."""
        return self.where(subject, op, *values, ignore_case=ignore_case, negated=True)

    def add(self, node: CriteriaNode) -> CriteriaBuilder:
        """Add an already-constructed node to the current group."""
        self._current().append(node)
        return self

    # -- grouping ------------------------------------------------------------

    def and_group(self) -> CriteriaBuilder:
        self._stack.append((CriteriaType.AND, []))
        return self

    def or_group(self) -> CriteriaBuilder:
        self._stack.append((CriteriaType.OR, []))
        return self

    def end_group(self) -> CriteriaBuilder:
        """Close the current group and add it to the parent."""
        if not self._stack:
            raise ValueError("No open group to close")
        group_op, nodes = self._stack.pop()
        self._current().append(_fold(group_op, nodes))
        return self

    # -- build ---------------------------------------------------------------

    def build(self) -> CriteriaNode:
        """
        Finalise and return the composed tree.

        Raises:
            ValueError: If groups are still open or no conditions were added.
        """
        if self._stack:
            raise ValueError(
                f"{len(self._stack)} group(s) still open; "
                f"call end_group() before build()"
            )
        if not self._nodes:
            raise ValueError("No conditions added to builder")
        return _fold(CriteriaType.AND, self._nodes)

    def reset(self) -> CriteriaBuilder:
        self._nodes.clear()
        self._stack.clear()
        return self

    def _current(self) -> list[CriteriaNode]:
        if self._stack:
            return self._stack[-1][1]
        return self._nodes


def _fold(op: CriteriaType, nodes: list[CriteriaNode]) -> CriteriaNode:
    if not nodes:
        raise ValueError("Cannot create an empty group")
    return reduce(lambda left, right: Combinator(op, left, right), nodes)

"""Syntax tree of a parsed native statement."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union


class _Undefined:
    """The value of a property that is not present in a document."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "undefined"

    def __bool__(self) -> bool:
        return False


UNDEFINED = _Undefined()


@dataclass(frozen=True)
class Path:
    """Property reference below the document alias: ``r.a.b`` → ``("a", "b")``."""

    segments: tuple[str, ...]

    @property
    def dotted(self) -> str:
        return ".".join(self.segments)


@dataclass(frozen=True)
class Param:
    name: str


@dataclass(frozen=True)
class Literal:
    value: Any


@dataclass(frozen=True)
class Call:
    name: str
    args: tuple[Expr, ...]


@dataclass(frozen=True)
class Compare:
    op: str
    left: Expr
    right: Expr


@dataclass(frozen=True)
class Between:
    subject: Expr
    low: Expr
    high: Expr


@dataclass(frozen=True)
class InList:
    subject: Expr
    items: tuple[Expr, ...]


@dataclass(frozen=True)
class Like:
    subject: Expr
    pattern: Expr


@dataclass(frozen=True)
class Not:
    operand: Expr


@dataclass(frozen=True)
class Logical:
    op: str
    left: Expr
    right: Expr


Expr = Union[Path, Param, Literal, Call, Compare, Between, InList, Like, Not, Logical]


@dataclass(frozen=True)
class OrderItem:
    path: Path
    descending: bool = False


@dataclass(frozen=True)
class SelectStatement:
    """
    ``SELECT [TOP n] * | VALUE COUNT(1) FROM ROOT r [WHERE ...] [ORDER BY ...]``.
    """

    alias: str
    where: Expr | None = None
    order_by: tuple[OrderItem, ...] = field(default=())
    top: int | None = None
    count: bool = False

    def parameter_names(self) -> set[str]:
        names: set[str] = set()
        if self.where is not None:
            _collect_params(self.where, names)
        return names


def _collect_params(expr: Expr, names: set[str]) -> None:
    if isinstance(expr, Param):
        names.add(expr.name)
    elif isinstance(expr, Call):
        for arg in expr.args:
            _collect_params(arg, names)
    elif isinstance(expr, (Compare, Logical)):
        _collect_params(expr.left, names)
        _collect_params(expr.right, names)
    elif isinstance(expr, Between):
        for part in (expr.subject, expr.low, expr.high):
            _collect_params(part, names)
    elif isinstance(expr, InList):
        _collect_params(expr.subject, names)
        for item in expr.items:
            _collect_params(item, names)
    elif isinstance(expr, Like):
        _collect_params(expr.subject, names)
        _collect_params(expr.pattern, names)
    elif isinstance(expr, Not):
        _collect_params(expr.operand, names)

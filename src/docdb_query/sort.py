from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator


class Direction(str, Enum):
    ASC = "ASC"
    DESC = "DESC"


@dataclass(frozen=True)
class Order:
    """Ordering on a single dot-path property."""

    property: str
    direction: Direction = Direction.ASC

    def __post_init__(self) -> None:
        if not isinstance(self.direction, Direction):
            object.__setattr__(self, "direction", Direction(str(self.direction).upper()))
        if not self.property:
            raise ValueError("Order property must be a non-empty string")

    @property
    def descending(self) -> bool:
        return self.direction is Direction.DESC


@dataclass(frozen=True)
class Sort:
    """Ordered list of property orderings. An empty sort means store order."""

    orders: tuple[Order, ...] = ()

    @classmethod
    def by(cls, *fields: str | Order | tuple[str, str]) -> Sort:
        """
        Build a sort from field specs.

        Accepts ``"name"`` (ascending), ``"-name"`` (descending),
        ``("name", "desc")`` or ready-made :class:`Order` objects.
        """
        orders: list[Order] = []
        for item in fields:
            if isinstance(item, Order):
                orders.append(item)
            elif isinstance(item, tuple):
                orders.append(Order(item[0], Direction(str(item[1]).upper())))
            elif item.startswith("-"):
                orders.append(Order(item[1:], Direction.DESC))
            else:
                orders.append(Order(item))
        return cls(tuple(orders))

    @classmethod
    def unsorted(cls) -> Sort:
        return cls()

    def __bool__(self) -> bool:
        return bool(self.orders)

    def __iter__(self) -> Iterator[Order]:
        return iter(self.orders)

    def and_then(self, other: Sort) -> Sort:
        return Sort(self.orders + other.orders)

    def to_list(self) -> list[str]:
        """Serialise to the ``["name", "-age"]`` form."""
        return [f"-{o.property}" if o.descending else o.property for o in self.orders]

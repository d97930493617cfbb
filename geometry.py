"""
Integer 2D geometry shared by the grid model, the widgets and the terminal.

Coordinates are (x, y) with x growing to the right and y growing downwards,
matching the terminal's column/row order.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterator


@dataclass(frozen=True)
class V2:
    """An integer 2D vector / grid position."""

    x: int = 0
    y: int = 0

    def __add__(self, other: V2) -> V2:
        return V2(self.x + other.x, self.y + other.y)

    def __sub__(self, other: V2) -> V2:
        return V2(self.x - other.x, self.y - other.y)


class Direction(Enum):
    """Cardinal direction for movement."""

    N = "N"  # Up (decreasing y)
    S = "S"  # Down (increasing y)
    E = "E"  # Right (increasing x)
    W = "W"  # Left (decreasing x)

    @property
    def delta(self) -> V2:
        return _DELTAS[self]


_DELTAS = {
    Direction.N: V2(0, -1),
    Direction.S: V2(0, 1),
    Direction.E: V2(1, 0),
    Direction.W: V2(-1, 0),
}


@dataclass(frozen=True)
class Rectangle:
    """
    Axis-aligned rectangle given by its top-left corner and size.

    A rectangle being dragged out by the user may carry a zero or negative
    size; call normalized() before iterating over it.
    """

    pos: V2
    size: V2

    @property
    def left(self) -> int:
        return self.pos.x

    @property
    def right(self) -> int:
        return self.pos.x + self.size.x - 1

    @property
    def top(self) -> int:
        return self.pos.y

    @property
    def bottom(self) -> int:
        return self.pos.y + self.size.y - 1

    @property
    def width(self) -> int:
        return self.size.x

    @property
    def height(self) -> int:
        return self.size.y

    def contains(self, pos: V2) -> bool:
        return self.left <= pos.x <= self.right and self.top <= pos.y <= self.bottom

    def grow(self, amount: int) -> Rectangle:
        """
        Expand the rectangle by `amount` on every side.

        A negative amount shrinks it; the result may end up with a
        non-positive size, in which case it contains no points.
        """
        return Rectangle(
            self.pos - V2(amount, amount),
            self.size + V2(2 * amount, 2 * amount),
        )

    def normalized(self) -> Rectangle:
        """
        Flip any axis with a non-positive size so that the size is positive.

        The far edge of a flipped axis becomes the new near edge, so a
        rectangle dragged up/left from its anchor covers the same cells as
        one dragged down/right towards the anchor.
        """
        if self.size.x > 0 and self.size.y > 0:
            return self

        x, width = self.pos.x, self.size.x
        if width <= 0:
            x, width = self.right, self.left - self.right + 1

        y, height = self.pos.y, self.size.y
        if height <= 0:
            y, height = self.bottom, self.top - self.bottom + 1

        return Rectangle(V2(x, y), V2(width, height))

    def points(self) -> Iterator[V2]:
        """Yield every position inside the rectangle, row by row."""
        for y in range(self.top, self.bottom + 1):
            for x in range(self.left, self.right + 1):
                yield V2(x, y)

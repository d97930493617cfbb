"""
Tile grid model for puzzle levels.

A Level is a fixed-size matrix of Cells plus the actor's start point and a
list of Triggers. Reads outside the grid return a shared empty cell and
writes outside the grid are dropped, so callers can probe neighbours
without bounds checks.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum

from geometry import Rectangle, V2

EMPTY_LETTER = "\0"
ACTOR_LETTER = "@"


class CellColor(Enum):
    """Colour of a cell's glyph or background."""

    BLACK = "black"  # Base colour
    WHITE = "white"  # Base colour
    LIGHT_GRAY = "light_gray"  # Decorative, also marks walk-through glyphs
    DARK_GRAY = "dark_gray"  # Decorative


BASE_COLORS = frozenset({CellColor.BLACK, CellColor.WHITE})


def is_base_color(color: CellColor) -> bool:
    return color in BASE_COLORS


def invert_color(color: CellColor) -> CellColor:
    """Swap black and white; decorative colours are returned unchanged."""
    if color == CellColor.BLACK:
        return CellColor.WHITE
    if color == CellColor.WHITE:
        return CellColor.BLACK
    return color


class ExitId(Enum):
    """Reserved trigger identifiers."""

    FINISH = "exit0"  # Ends the play session
    BRANCH_A = "exit1"  # Ends the play session through the first branch
    BRANCH_B = "exit2"  # Ends the play session through the second branch


BRANCH_EXITS = frozenset({ExitId.BRANCH_A, ExitId.BRANCH_B})


@dataclass(frozen=True)
class Cell:
    """One grid position: a glyph plus its foreground and background colour."""

    letter: str = EMPTY_LETTER
    foreground: CellColor = CellColor.BLACK
    background: CellColor = CellColor.BLACK

    @property
    def empty(self) -> bool:
        return self.letter in (EMPTY_LETTER, " ")

    def with_letter(self, letter: str) -> Cell:
        return replace(self, letter=letter)


EMPTY_CELL = Cell()


@dataclass(frozen=True)
class Trigger:
    """A named point of interest on the grid."""

    pos: V2
    id: str

    @property
    def exit_id(self) -> ExitId | None:
        """The reserved exit this trigger stands for, if any."""
        try:
            return ExitId(self.id)
        except ValueError:
            return None


@dataclass
class Level:
    """A rectangular grid of cells with a start point and triggers."""

    width: int
    height: int
    data: list[list[Cell]] = field(default_factory=list)
    start: V2 = field(default_factory=V2)
    triggers: list[Trigger] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.data:
            self.data = [[EMPTY_CELL] * self.width for _ in range(self.height)]

    @property
    def size(self) -> V2:
        return V2(self.width, self.height)

    @property
    def bounds(self) -> Rectangle:
        return Rectangle(V2(0, 0), self.size)

    def contains(self, pos: V2) -> bool:
        return 0 <= pos.x < self.width and 0 <= pos.y < self.height

    def __getitem__(self, pos: V2) -> Cell:
        if self.contains(pos):
            return self.data[pos.y][pos.x]
        return EMPTY_CELL

    def set(self, pos: V2, cell: Cell) -> None:
        """Store a cell; positions outside the grid are ignored."""
        if self.contains(pos):
            self.data[pos.y][pos.x] = cell

    def fill(self, cell: Cell) -> None:
        for row in self.data:
            row[:] = [cell] * self.width

    def clone(self) -> Level:
        """Independent copy; cells are immutable so copying the rows is enough."""
        return Level(
            self.width,
            self.height,
            [list(row) for row in self.data],
            self.start,
            list(self.triggers),
        )

    def resize(self, width: int, height: int, filler: Cell = EMPTY_CELL) -> None:
        """
        Change the grid size in place, keeping the overlapping top-left area.

        Triggers that fall outside the new bounds are dropped and the start
        point is clamped into the grid.
        """
        rows = [row[:width] + [filler] * (width - len(row[:width])) for row in self.data[:height]]
        while len(rows) < height:
            rows.append([filler] * width)
        self.data = rows
        self.width = width
        self.height = height
        self.triggers = [t for t in self.triggers if self.contains(t.pos)]
        self.start = V2(
            min(max(self.start.x, 0), width - 1),
            min(max(self.start.y, 0), height - 1),
        )

    # -------------------------------------------------------------------------
    # Triggers
    # -------------------------------------------------------------------------

    def trigger_at(self, pos: V2) -> Trigger | None:
        """First trigger stored at `pos`, or None."""
        for trigger in self.triggers:
            if trigger.pos == pos:
                return trigger
        return None

    def remove_triggers_at(self, pos: V2) -> None:
        self.triggers = [t for t in self.triggers if t.pos != pos]

    def place_trigger(self, pos: V2, trigger_id: str) -> None:
        """Replace whatever triggers sit at `pos` with a single new one."""
        if not self.contains(pos):
            return
        self.remove_triggers_at(pos)
        self.triggers.append(Trigger(pos, trigger_id))

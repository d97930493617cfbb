"""
Shared test fixtures: a scripted stand-in for the terminal device.
"""

from __future__ import annotations

from collections import deque
from typing import Callable, Iterable

import pytest

from geometry import V2
from level import Cell, CellColor, Level
from terminal import InputEvent
from ui import UiContext

MAX_POLLS = 10_000


class FakeTerminal:
    """
    Records output and replays queued input events.

    poll() reports input while events are queued; after MAX_POLLS polls it
    raises so a test that never terminates fails instead of hanging.
    """

    def __init__(self, size: V2 = V2(40, 12), events: Iterable[InputEvent] = ()) -> None:
        self._size = size
        self.events: deque[InputEvent] = deque(events)
        self.output: list[str] = []
        self.messages: list[str] = []
        self.flushes = 0
        self.polls = 0
        self.fullscreen = True
        self.on_poll: Callable[[FakeTerminal], None] | None = None

    def size(self) -> V2:
        return self._size

    def resize_to(self, size: V2) -> None:
        self._size = size

    def enter_fullscreen(self) -> None:
        self.fullscreen = True

    def leave_fullscreen(self) -> None:
        self.fullscreen = False

    def message(self, text: str) -> None:
        self.messages.append(text)

    def write(self, text: str) -> None:
        self.output.append(text)

    def move_to(self, pos: V2) -> None:
        self.output.append(f"<{pos.x},{pos.y}>")

    def clear(self) -> None:
        self.output.append("<clear>")

    def show_cursor(self, visible: bool, underscore: bool = False) -> None:
        pass

    def flush(self) -> None:
        self.flushes += 1

    def poll(self, timeout: float) -> bool:
        self.polls += 1
        if self.polls > MAX_POLLS:
            raise RuntimeError("Test ran out of scripted input")
        if self.on_poll is not None:
            self.on_poll(self)
        return bool(self.events)

    def read_event(self) -> InputEvent | None:
        return self.events.popleft()


@pytest.fixture
def terminal() -> FakeTerminal:
    return FakeTerminal()


@pytest.fixture
def ui(terminal: FakeTerminal) -> UiContext:
    return UiContext(terminal)  # type: ignore[arg-type]


def make_level(rows: list[str], start: V2 = V2(0, 0)) -> Level:
    """
    Build a level from a picture, one character per cell:

        .   empty, black background
        ,   empty, white background
        o   white 'o' on black (pushable on black)
        O   black 'o' on white (pushable on white)
        ~   light-gray '~' on black (walk-through)
        #   dark-gray '#' on black (solid)
        @   black '@' on white (swap target)
    """
    legend = {
        ".": Cell("\0", CellColor.WHITE, CellColor.BLACK),
        ",": Cell("\0", CellColor.BLACK, CellColor.WHITE),
        "o": Cell("o", CellColor.WHITE, CellColor.BLACK),
        "O": Cell("o", CellColor.BLACK, CellColor.WHITE),
        "~": Cell("~", CellColor.LIGHT_GRAY, CellColor.BLACK),
        "#": Cell("#", CellColor.DARK_GRAY, CellColor.BLACK),
        "@": Cell("@", CellColor.BLACK, CellColor.WHITE),
    }
    data = [[legend[c] for c in row] for row in rows]
    return Level(len(rows[0]), len(rows), data, start)

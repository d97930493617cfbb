"""
Widget runtime: identities, bubbled events, the widget contract and the
polling main loop.

Widgets form a tree where a parent owns its children outright. Input and
per-frame updates flow down the tree; results flow back up as UiEvents
tagged with the identity of the widget that produced them. The main loop
stops when the root widget bubbles one of the terminal event types under
its own identity.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Union

import readchar

from geometry import Rectangle, V2
from level import ExitId
from terminal import InputEvent, KeyEvent, Terminal

logger = logging.getLogger(__name__)

POLL_TIMEOUT = 0.1  # Seconds per poll attempt
POLL_RETRIES = 25  # Poll attempts before falling through to an update tick


@dataclass(frozen=True)
class UiId:
    """Opaque widget identity; only ever compared for equality."""

    value: int


class UiEventType(Enum):
    """What a bubbled event reports."""

    OK = "ok"  # Finished successfully
    CANCELED = "canceled"  # Abandoned by the user
    RESULT = "result"  # Finished with a value
    CHANGED = "changed"  # Needs a redraw, nothing more


TERMINAL_EVENTS = frozenset({UiEventType.OK, UiEventType.CANCELED, UiEventType.RESULT})

# RESULT payloads: the exit a level was left through
EventValue = Union[ExitId, None]


@dataclass(frozen=True)
class UiEvent:
    """An outcome bubbled up from a widget."""

    id: UiId
    type: UiEventType
    value: EventValue = None

    @property
    def terminal(self) -> bool:
        return self.type in TERMINAL_EVENTS


class Widget:
    """
    Base class for everything the main loop can drive.

    Subclasses implement print() and usually input(); the rest has sensible
    defaults. A widget is dirty from construction until its first render.
    """

    def __init__(self, ui: UiContext) -> None:
        self._id = ui.next_id()
        self._need_refresh = True

    @property
    def id(self) -> UiId:
        return self._id

    def print(self, ui: UiContext) -> None:
        """Render the widget if it is dirty."""
        raise NotImplementedError

    def input(self, event: InputEvent, ui: UiContext) -> UiEvent | None:
        """Consume one input event."""
        self.mark_refresh(True)
        return None

    def update(self) -> UiEvent | None:
        """Per-frame tick, independent of input."""
        for child in self.child_widgets():
            child.update()
        return None

    def child_widgets(self) -> list[Widget]:
        return []

    def mark_refresh(self, value: bool) -> None:
        self._need_refresh = value

    def need_refresh(self) -> bool:
        return self._need_refresh

    def resize(self, bounds: Rectangle) -> None:
        """The screen area available to the widget changed."""
        self.mark_refresh(True)
        for child in self.child_widgets():
            child.resize(bounds)

    def event(self, event_type: UiEventType, value: EventValue = None) -> UiEvent:
        """Build an event tagged with this widget's identity."""
        return UiEvent(self._id, event_type, value)


class UiContext:
    """
    Shared runtime state: identity allocation and the terminal device.

    The terminal's full-screen mode is owned here; widgets ask the context
    to step out of it (to show a plain-text message) and back in, and the
    caller of run() holds Terminal.session() so every exit path restores
    the terminal.
    """

    def __init__(self, terminal: Terminal) -> None:
        self.terminal = terminal
        self._ids = itertools.count(1)

    def next_id(self) -> UiId:
        return UiId(next(self._ids))

    def buffer_size(self) -> V2:
        return self.terminal.size()

    def goto(self, pos: V2) -> None:
        if pos.x < 0 or pos.y < 0:
            raise ValueError(f"Cannot move the cursor to ({pos.x}, {pos.y})")
        self.terminal.move_to(pos)

    def show_message(self, text: str) -> None:
        """Leave full-screen mode and print `text` on the normal screen."""
        self.terminal.leave_fullscreen()
        self.terminal.message(text)

    def restore_fullscreen(self) -> None:
        self.terminal.enter_fullscreen()

    @staticmethod
    def should_exit(main_id: UiId, event: UiEvent | None) -> bool:
        return event is not None and event.id == main_id and event.terminal

    @staticmethod
    def is_interrupt(event: InputEvent) -> bool:
        return isinstance(event, KeyEvent) and event.key == readchar.key.CTRL_C

    def run(self, widget: Widget) -> None:
        """
        Drive `widget` until it bubbles a terminal event or Ctrl+C is pressed.

        Each iteration waits for input in short polls, drains everything
        already queued before redrawing, re-checks the terminal size, then
        ticks update() and renders.
        """
        size = self.buffer_size()
        widget.resize(Rectangle(V2(0, 0), size))
        widget.print(self)
        self.terminal.flush()

        main_id = widget.id
        last_size: V2 | None = None
        while True:
            has_input = False
            retry = POLL_RETRIES
            while not has_input and retry > 0:
                if self.terminal.poll(POLL_TIMEOUT):
                    # Handle the whole backlog before the next redraw so a
                    # burst (mouse wheel, key repeat) costs a single frame
                    while self.terminal.poll(0):
                        event = self.terminal.read_event()
                        has_input = True
                        if event is None:
                            continue
                        if self.is_interrupt(event):
                            logger.info("Interrupted")
                            return
                        if self.should_exit(main_id, widget.input(event, self)):
                            return

                new_size = self.buffer_size()
                if new_size != last_size:
                    logger.debug("Terminal size %dx%d", new_size.x, new_size.y)
                    widget.resize(Rectangle(V2(0, 0), new_size))
                    last_size = new_size
                    break
                retry -= 1

            if self.should_exit(main_id, widget.update()):
                return

            widget.print(self)
            self.terminal.flush()

"""
Character-grid terminal device: raw mode, screen output and input events.

Output goes through a rich Console's file; cursor and screen control codes
come from rich.control.Control. Input is read straight from the TTY in raw
mode and decoded into KeyEvent / MouseEvent values whose key names are the
readchar.key constants.

POSIX only (termios/select).
"""

from __future__ import annotations

import codecs
import logging
import os
import re
import select
import sys
import termios
import tty
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Union

import readchar
from rich.console import Console
from rich.control import Control

from geometry import V2

logger = logging.getLogger(__name__)

# Following bytes of an escape sequence arrive together with the ESC; a bare
# ESC keypress is recognised when nothing follows within this time.
ESCAPE_TIMEOUT = 0.01

ENABLE_MOUSE = "\x1b[?1000h\x1b[?1006h"
DISABLE_MOUSE = "\x1b[?1006l\x1b[?1000l"
UNDERSCORE_CURSOR = "\x1b[4 q"
DEFAULT_CURSOR = "\x1b[0 q"
RESET_STYLE = "\x1b[0m"

DEFAULT_SIZE = V2(80, 24)


# =============================================================================
# Input events
# =============================================================================


@dataclass(frozen=True)
class KeyEvent:
    """A keypress. `key` is a readchar.key constant or a printable character."""

    key: str
    shift: bool = False
    ctrl: bool = False
    alt: bool = False

    @property
    def plain(self) -> bool:
        """True when no modifier other than an implicit shift is held."""
        return not (self.ctrl or self.alt)


@dataclass(frozen=True)
class MouseEvent:
    """A mouse button change at a screen cell (0-based column/row)."""

    column: int
    row: int
    button: int = 0  # 0 left, 1 middle, 2 right, 64/65 wheel up/down
    pressed: bool = True
    shift: bool = False
    ctrl: bool = False
    alt: bool = False


InputEvent = Union[KeyEvent, MouseEvent]

# CSI sequences carrying a modifier parameter, e.g. "\x1b[1;2A" or "\x1b[19;5~"
_CSI_MODIFIED = re.compile(r"^\x1b\[(\d*);(\d+)([A-Za-z~])$")
_SGR_MOUSE = re.compile(r"^\x1b\[<(\d+);(\d+);(\d+)([Mm])$")

_CONTROL_KEYS = {
    readchar.key.CTRL_C,
    readchar.key.CTRL_H,
    readchar.key.BACKSPACE,
    readchar.key.ENTER,
    readchar.key.TAB,
    readchar.key.ESC,
}


def decode(sequence: str) -> InputEvent | None:
    """
    Decode one complete input sequence into an event.

    Modifier parameters are folded into the event's flags so that, for
    example, Shift+F8 ("\\x1b[19;2~") becomes KeyEvent(readchar.key.F8, shift=True).
    Returns None for sequences that mean nothing to us.
    """
    if not sequence:
        return None

    if sequence in ("\r", "\n"):
        # Raw mode delivers CR for the Enter key
        return KeyEvent(readchar.key.ENTER)

    mouse = _SGR_MOUSE.match(sequence)
    if mouse:
        code, col, row, final = mouse.groups()
        code_value = int(code)
        return MouseEvent(
            column=int(col) - 1,
            row=int(row) - 1,
            button=code_value & 0b11000011,
            pressed=final == "M",
            shift=bool(code_value & 4),
            alt=bool(code_value & 8),
            ctrl=bool(code_value & 16),
        )

    modified = _CSI_MODIFIED.match(sequence)
    if modified:
        number, modifier, final = modified.groups()
        bits = int(modifier) - 1
        if final == "~":
            base = f"\x1b[{number}~"
        elif final in "PQRS":
            base = f"\x1bO{final}"
        else:
            base = f"\x1b[{final}"
        return KeyEvent(base, shift=bool(bits & 1), alt=bool(bits & 2), ctrl=bool(bits & 4))

    if sequence.startswith("\x1b") and len(sequence) == 2:
        return KeyEvent(sequence[1], alt=True)

    if len(sequence) == 1 and sequence not in _CONTROL_KEYS and ord(sequence) < 0x20:
        # Ctrl+letter arrives as the letter's control code
        return KeyEvent(chr(ord(sequence) + ord("a") - 1), ctrl=True)

    if len(sequence) == 1 and sequence.isupper():
        return KeyEvent(sequence, shift=True)

    return KeyEvent(sequence)


# =============================================================================
# Device
# =============================================================================


class Terminal:
    """
    The terminal as an output grid and an input source.

    Writes are queued and sent in one go by flush(); nothing is retried, an
    OSError from the output file propagates to the caller.
    """

    def __init__(self, console: Console | None = None, input_fd: int | None = None) -> None:
        self.console = console or Console()
        self.input_fd = sys.stdin.fileno() if input_fd is None else input_fd
        self._pending: list[str] = []
        self._saved_mode: list | None = None
        self._fullscreen = False
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    # -------------------------------------------------------------------------
    # Modes
    # -------------------------------------------------------------------------

    @contextmanager
    def session(self) -> Iterator[Terminal]:
        """
        Raw mode and the full-screen display for the duration of the block.

        The terminal is restored on every exit path, including exceptions
        and KeyboardInterrupt.
        """
        self._enter_raw()
        try:
            self.enter_fullscreen()
            yield self
        finally:
            try:
                self.leave_fullscreen()
            finally:
                self._leave_raw()

    def _enter_raw(self) -> None:
        if self._saved_mode is None and os.isatty(self.input_fd):
            self._saved_mode = termios.tcgetattr(self.input_fd)
            tty.setraw(self.input_fd)

    def _leave_raw(self) -> None:
        if self._saved_mode is not None:
            termios.tcsetattr(self.input_fd, termios.TCSADRAIN, self._saved_mode)
            self._saved_mode = None

    def enter_fullscreen(self) -> None:
        """Alternate screen with mouse capture."""
        if self._fullscreen:
            return
        self.write(str(Control.alt_screen(True)) + ENABLE_MOUSE)
        self.flush()
        self._fullscreen = True
        logger.debug("Entered full-screen mode")

    def leave_fullscreen(self) -> None:
        """
        Back to the normal screen with a visible cursor.

        Raw mode stays on inside a session so single keypresses still arrive.
        """
        if not self._fullscreen:
            return
        self._fullscreen = False
        self._pending.clear()
        self.write(
            DISABLE_MOUSE
            + RESET_STYLE
            + DEFAULT_CURSOR
            + str(Control.show_cursor(True))
            + str(Control.alt_screen(False))
        )
        self.flush()
        logger.debug("Left full-screen mode")

    @property
    def fullscreen(self) -> bool:
        return self._fullscreen

    def size(self) -> V2:
        try:
            width, height = self.console.size
        except OSError:
            return DEFAULT_SIZE
        return V2(width, height)

    # -------------------------------------------------------------------------
    # Output
    # -------------------------------------------------------------------------

    def write(self, text: str) -> None:
        self._pending.append(text)

    def move_to(self, pos: V2) -> None:
        self._pending.append(str(Control.move_to(pos.x, pos.y)))

    def clear(self) -> None:
        self._pending.append(RESET_STYLE + str(Control.clear()) + str(Control.home()))

    def show_cursor(self, visible: bool, underscore: bool = False) -> None:
        if visible and underscore:
            self._pending.append(UNDERSCORE_CURSOR)
        self._pending.append(str(Control.show_cursor(visible)))

    def message(self, text: str) -> None:
        """Print a line of plain text on the normal screen."""
        self.write("\r\n" + text.replace("\n", "\r\n") + "\r\n")
        self.flush()

    def flush(self) -> None:
        if not self._pending:
            return
        out = self.console.file
        out.write("".join(self._pending))
        self._pending.clear()
        out.flush()

    # -------------------------------------------------------------------------
    # Input
    # -------------------------------------------------------------------------

    def poll(self, timeout: float) -> bool:
        """Wait up to `timeout` seconds for input to become available."""
        ready, _, _ = select.select([self.input_fd], [], [], timeout)
        return bool(ready)

    def _read_char(self) -> str:
        """Read one character, consuming every byte of a multi-byte UTF-8 key."""
        while True:
            data = os.read(self.input_fd, 1)
            char = self._decoder.decode(data)
            if char:
                return char
            if not data or not self.poll(ESCAPE_TIMEOUT):
                # Truncated sequence: give up on it rather than block
                return self._decoder.decode(b"", final=True)

    def _read_sequence(self) -> str:
        first = self._read_char()
        if first != "\x1b" or not self.poll(ESCAPE_TIMEOUT):
            return first

        sequence = first + self._read_char()
        if sequence[-1] == "O":
            # SS3: exactly one more character (F1-F4, some arrow keys)
            if self.poll(ESCAPE_TIMEOUT):
                sequence += self._read_char()
            return sequence
        if sequence[-1] != "[":
            return sequence

        # CSI: parameters until a final byte in @..~
        while self.poll(ESCAPE_TIMEOUT):
            char = self._read_char()
            sequence += char
            if "@" <= char <= "~":
                break
        return sequence

    def read_event(self) -> InputEvent | None:
        """Read and decode one pending input sequence; call after poll()."""
        sequence = self._read_sequence()
        event = decode(sequence)
        if event is None:
            logger.debug("Ignored input sequence %r", sequence)
        return event

"""
In-place level editor.

The editor is a modal widget. Every mode shares the cursor keys, mouse
clicks and the function keys (F2 view, F3 text, F4 wrap column, F5 paint,
F6 markers, F8 / Shift+F8 test play, F9 save); the remaining keys mean
different things per mode. Test play runs a LevelRunner on a copy of the
level, so nothing done while playing ever reaches the edited level.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from enum import Enum
from pathlib import Path

import readchar
import yaml

from geometry import Rectangle, V2
from level import (
    EMPTY_LETTER,
    Cell,
    CellColor,
    ExitId,
    Level,
    invert_color,
    is_base_color,
)
from level_io import SaveError, load_level, save_level
from level_render import (
    SELECTION,
    START_MARKER,
    STATUS_BAR,
    TRIGGER_MARKER,
    draw_at,
    draw_frame,
    draw_level,
    keep_in_view,
    outline_rect,
)
from runner import LevelRunner
from terminal import InputEvent, KeyEvent, MouseEvent
from ui import UiContext, UiEvent, UiEventType, Widget

logger = logging.getLogger(__name__)

DEFAULT_LEVEL_SIZE = V2(250, 250)
MIN_LEVEL_SIZE = 5
VIEW_PADDING = 2

BLANK_CELL = Cell(EMPTY_LETTER, CellColor.WHITE, CellColor.BLACK)


class EditorMode(Enum):
    """What keys do in the editor."""

    VIEW = "View"
    WRITE_TEXT = "WriteText"
    ERROR_MESSAGE = "ErrorMessage"
    PAINT = "Paint"
    SET_MARKERS = "SetMarkers"
    PLAY = "Play"


class PaintMode(Enum):
    """How painting changes a cell's colours."""

    BLACK_BACKGROUND_NORMAL = "BlackBackgroundNormal"
    WHITE_BACKGROUND_NORMAL = "WhiteBackgroundNormal"
    INVERT = "Invert"  # Swaps black and white on both channels
    TEXT_LIGHT_GRAY = "TextLightGray"
    TEXT_DARK_GRAY = "TextDarkGray"
    BACKGROUND_GRAY = "BackgroundGray"
    BACKGROUND_DARK_GRAY = "BackgroundDarkGray"


PAINT_KEYS = {
    "z": PaintMode.WHITE_BACKGROUND_NORMAL,
    "x": PaintMode.BLACK_BACKGROUND_NORMAL,
    "c": PaintMode.INVERT,
    "v": PaintMode.TEXT_LIGHT_GRAY,
    "b": PaintMode.TEXT_DARK_GRAY,
    "n": PaintMode.BACKGROUND_GRAY,
    "m": PaintMode.BACKGROUND_DARK_GRAY,
}

MARKER_KEYS = {
    "v": ExitId.FINISH,
    "x": ExitId.BRANCH_A,
    "c": ExitId.BRANCH_B,
}

CURSOR_KEYS = {
    readchar.key.UP: V2(0, -1),
    readchar.key.DOWN: V2(0, 1),
    readchar.key.LEFT: V2(-1, 0),
    readchar.key.RIGHT: V2(1, 0),
}

DIRECTION_KEYS = {
    "w": V2(0, -1),
    "s": V2(0, 1),
    "a": V2(-1, 0),
    "d": V2(1, 0),
}

BACKSPACE_KEYS = {readchar.key.BACKSPACE, readchar.key.CTRL_H}

HELP = {
    EditorMode.VIEW: (
        " F2: view F3: text mode F4: corner F5: paint F6: markers F8: test F9: save [shift]+F8 test here "
        " shift+R -> resize level, [t]->toggle triggers, [m] select rect, k: copy selection here,"
        " l: move selection, 0: fill "
    ),
    EditorMode.PAINT: " [ZXCVBNM]->colors, [SPACE]->paint here, [WASD] paint in direction",
    EditorMode.SET_MARKERS: " [z]->level start [vxc]->exits [t]-> toggle trigger drawing",
}


def apply_paint(cell: Cell, mode: PaintMode) -> Cell:
    """Return `cell` recoloured by `mode`; the glyph is never touched."""
    match mode:
        case PaintMode.BLACK_BACKGROUND_NORMAL:
            return replace(cell, background=CellColor.BLACK, foreground=CellColor.WHITE)
        case PaintMode.WHITE_BACKGROUND_NORMAL:
            return replace(cell, background=CellColor.WHITE, foreground=CellColor.BLACK)
        case PaintMode.INVERT:
            background = invert_color(cell.background) if is_base_color(cell.background) else cell.background
            foreground = invert_color(cell.foreground) if is_base_color(cell.foreground) else cell.foreground
            return replace(cell, background=background, foreground=foreground)
        case PaintMode.TEXT_LIGHT_GRAY:
            return replace(cell, foreground=CellColor.LIGHT_GRAY)
        case PaintMode.TEXT_DARK_GRAY:
            return replace(cell, foreground=CellColor.DARK_GRAY)
        case PaintMode.BACKGROUND_GRAY:
            return replace(cell, background=CellColor.LIGHT_GRAY)
        case PaintMode.BACKGROUND_DARK_GRAY:
            return replace(cell, background=CellColor.DARK_GRAY)
    raise ValueError(f"Unknown paint mode: {mode}")


def blank_level(size: V2 = DEFAULT_LEVEL_SIZE) -> Level:
    level = Level(size.x, size.y)
    level.fill(BLANK_CELL)
    return level


class LevelEditor(Widget):
    """Modal level editor with an embedded test-play runner."""

    def __init__(self, ui: UiContext, level: Level | None = None, path: Path | None = None) -> None:
        super().__init__(ui)
        self.level = level if level is not None else blank_level()
        self.path = path
        self.cursor_pos = V2(0, 0)
        self.view_corner = V2(0, 0)
        self.wrap_pos = V2(0, 0)
        self.mode = EditorMode.VIEW
        self.paint_mode = PaintMode.WHITE_BACKGROUND_NORMAL
        self.test_runner = LevelRunner(ui)
        self.show_triggers = True
        self.selection_rect = Rectangle(V2(0, 0), V2(1, 1))
        self.selecting_rect = False
        self.screen_size = ui.buffer_size()

    @classmethod
    def from_path(cls, ui: UiContext, path: Path) -> LevelEditor:
        """
        Open `path` for editing; a missing file starts a blank level saved there.

        Raises:
            LevelLoadError: if the file exists but cannot be loaded.
        """
        level = load_level(path) if path.is_file() else None
        return cls(ui, level, path)

    # -------------------------------------------------------------------------
    # Editing operations
    # -------------------------------------------------------------------------

    def save(self) -> None:
        if self.path is None:
            raise SaveError("Can't save, no path specified")
        save_level(self.level, self.path)

    def set_mode(self, mode: EditorMode) -> None:
        if mode != self.mode:
            logger.debug("Editor mode %s -> %s", self.mode.value, mode.value)
        self.mode = mode

    def resize_level(self, size: V2) -> None:
        if size.x < MIN_LEVEL_SIZE or size.y < MIN_LEVEL_SIZE:
            return
        self.level.resize(size.x, size.y, BLANK_CELL)

    def move_cursor(self, offset: V2) -> None:
        self.cursor_pos = self.cursor_pos + offset
        self.keep_cursor_in_view()

    def keep_cursor_in_view(self) -> None:
        self.view_corner = keep_in_view(self.cursor_pos, self.view_corner, self.screen_size, VIEW_PADDING)

    def paint_cell(self, pos: V2) -> None:
        self.level.set(pos, apply_paint(self.level[pos], self.paint_mode))

    def move_and_paint(self, offset: V2) -> None:
        self.move_cursor(offset)
        self.paint_cell(self.cursor_pos)

    def write_letter(self, letter: str) -> None:
        self.level.set(self.cursor_pos, self.level[self.cursor_pos].with_letter(letter))
        self.cursor_pos = self.cursor_pos + V2(1, 0)
        self.keep_cursor_in_view()

    def erase_letter(self) -> None:
        self.cursor_pos = self.cursor_pos - V2(1, 0)
        self.level.set(self.cursor_pos, self.level[self.cursor_pos].with_letter(EMPTY_LETTER))
        self.keep_cursor_in_view()

    def new_line(self) -> None:
        self.cursor_pos = V2(self.wrap_pos.x, self.cursor_pos.y + 1)
        self.keep_cursor_in_view()

    def copy_rect(self, rect: Rectangle, target: V2) -> None:
        """Copy the cells of `rect` so its corner lands on `target`."""
        source = self.level.clone()
        for pos in rect.points():
            self.level.set(pos - rect.pos + target, source[pos])

    def move_rect(self, rect: Rectangle, target: V2) -> None:
        """Like copy_rect, but the vacated cells are repainted and emptied first."""
        source = self.level.clone()
        for pos in rect.points():
            self.paint_cell(pos)
            self.level.set(pos, self.level[pos].with_letter(" "))
        for pos in rect.points():
            self.level.set(pos - rect.pos + target, source[pos])

    def fill_rect(self, rect: Rectangle) -> None:
        """Fill `rect` with copies of its top-left cell."""
        cell = self.level[rect.pos]
        for pos in rect.points():
            self.level.set(pos, cell)

    def set_start(self, pos: V2) -> None:
        if self.level.contains(pos):
            self.level.start = pos

    def start_level_test(self, pos: V2) -> None:
        """Play a copy of the level with the actor placed at `pos`."""
        runner = self.test_runner
        runner.level = self.level.clone()
        runner.start()
        runner.pos = pos
        runner.resize(Rectangle(V2(0, 0), self.screen_size))
        runner.keep_actor_in_view()
        self.set_mode(EditorMode.PLAY)

    def handle_test_play(self, event: UiEvent | None) -> UiEvent | None:
        """Any exit from the test run returns to editing; the editor itself stays open."""
        if event is not None and event.terminal:
            logger.debug("Test play ended with %s", event.value or event.type.value)
            self.set_mode(EditorMode.VIEW)
            self.mark_refresh(True)
            return self.event(UiEventType.CHANGED)
        return event

    def show_error(self, ui: UiContext, text: str) -> None:
        self.set_mode(EditorMode.ERROR_MESSAGE)
        ui.show_message(f"\n{text}\n\nPress any key to continue")

    def switch_to_edit(self, ui: UiContext) -> None:
        self.set_mode(EditorMode.VIEW)
        ui.restore_fullscreen()

    def save_with_message(self, ui: UiContext) -> None:
        try:
            self.save()
        except (SaveError, OSError, yaml.YAMLError) as exc:
            logger.error("Failed to save level: %s", exc)
            self.show_error(ui, f"Failed to save: {exc}")
        else:
            self.show_error(ui, "Saved!")

    # -------------------------------------------------------------------------
    # Input
    # -------------------------------------------------------------------------

    def input(self, event: InputEvent, ui: UiContext) -> UiEvent | None:
        self.mark_refresh(True)

        if self.mode == EditorMode.ERROR_MESSAGE:
            if isinstance(event, KeyEvent):
                self.switch_to_edit(ui)
                return self.event(UiEventType.CHANGED)
            return None

        if self.mode == EditorMode.PLAY:
            if isinstance(event, KeyEvent) and event.key == readchar.key.ESC:
                self.set_mode(EditorMode.VIEW)
                return self.event(UiEventType.CHANGED)
            return self.handle_test_play(self.test_runner.input(event, ui))

        if isinstance(event, MouseEvent):
            return self._input_mouse(event)

        if not event.plain:
            return None

        for handler in (self._input_global, self._input_shared, self._input_mode):
            result = handler(event, ui)
            if result is not None:
                return result
        return None

    def _input_mouse(self, event: MouseEvent) -> UiEvent | None:
        if event.button == 0 and event.pressed and not (event.shift or event.ctrl or event.alt):
            self.cursor_pos = self.view_corner + V2(event.column, event.row)
            self.keep_cursor_in_view()
            return self.event(UiEventType.CHANGED)
        return None

    def _input_global(self, event: KeyEvent, ui: UiContext) -> UiEvent | None:
        key = event.key
        if key in CURSOR_KEYS and not event.shift:
            self.move_cursor(CURSOR_KEYS[key])
        elif key == readchar.key.F8:
            self.start_level_test(self.cursor_pos if event.shift else self.level.start)
        elif event.shift:
            return None
        elif key == readchar.key.F2:
            self.set_mode(EditorMode.VIEW)
        elif key == readchar.key.F3:
            self.set_mode(EditorMode.WRITE_TEXT)
            self.wrap_pos = self.cursor_pos
        elif key == readchar.key.F4:
            self.wrap_pos = self.cursor_pos
        elif key == readchar.key.F5:
            self.set_mode(EditorMode.PAINT)
        elif key == readchar.key.F6:
            self.set_mode(EditorMode.SET_MARKERS)
        elif key == readchar.key.F9:
            self.save_with_message(ui)
        else:
            return None
        return self.event(UiEventType.CHANGED)

    def _input_shared(self, event: KeyEvent, ui: UiContext) -> UiEvent | None:
        """Viewport panning and trigger display, outside text and paint modes."""
        key = event.key
        if self.mode not in (EditorMode.WRITE_TEXT, EditorMode.PAINT) and key in DIRECTION_KEYS:
            self.view_corner = self.view_corner + DIRECTION_KEYS[key]
            return self.event(UiEventType.CHANGED)
        if self.mode != EditorMode.WRITE_TEXT and key == "t":
            self.show_triggers = not self.show_triggers
            return self.event(UiEventType.CHANGED)
        return None

    def _input_mode(self, event: KeyEvent, ui: UiContext) -> UiEvent | None:
        match self.mode:
            case EditorMode.VIEW:
                handled = self._input_view(event)
            case EditorMode.WRITE_TEXT:
                handled = self._input_text(event)
            case EditorMode.PAINT:
                handled = self._input_paint(event)
            case EditorMode.SET_MARKERS:
                handled = self._input_markers(event)
            case _:
                handled = False
        return self.event(UiEventType.CHANGED) if handled else None

    def _input_view(self, event: KeyEvent) -> bool:
        key = event.key
        if key == "e":
            self.set_mode(EditorMode.WRITE_TEXT)
            self.wrap_pos = self.cursor_pos
        elif key in ("R", "r") and event.shift:
            self.resize_level(self.cursor_pos)
        elif key == "m" and not self.selecting_rect:
            self.selecting_rect = True
            self.selection_rect = Rectangle(self.cursor_pos, V2(1, 1))
        elif key in ("m", readchar.key.ENTER, readchar.key.ESC) and self.selecting_rect:
            self.selecting_rect = False
            self.selection_rect = self.selection_rect.normalized()
        elif key == "k":
            self.copy_rect(self.selection_rect.normalized(), self.cursor_pos)
        elif key == "l":
            self.move_rect(self.selection_rect.normalized(), self.cursor_pos)
        elif key == "0":
            self.fill_rect(self.selection_rect.normalized())
        else:
            return False
        return True

    def _input_text(self, event: KeyEvent) -> bool:
        key = event.key
        if key == readchar.key.ENTER:
            self.new_line()
        elif key == readchar.key.ESC:
            self.set_mode(EditorMode.VIEW)
        elif key in BACKSPACE_KEYS:
            self.erase_letter()
        elif len(key) == 1 and key.isprintable():
            self.write_letter(key)
        else:
            return False
        return True

    def _input_paint(self, event: KeyEvent) -> bool:
        key = event.key
        if key == readchar.key.ESC:
            self.set_mode(EditorMode.VIEW)
        elif key in DIRECTION_KEYS:
            self.move_and_paint(DIRECTION_KEYS[key])
        elif key in PAINT_KEYS:
            self.paint_mode = PAINT_KEYS[key]
        elif key == " ":
            self.paint_cell(self.cursor_pos)
        else:
            return False
        return True

    def _input_markers(self, event: KeyEvent) -> bool:
        key = event.key
        if key == readchar.key.ESC:
            self.set_mode(EditorMode.VIEW)
        elif key == "z":
            self.set_start(self.cursor_pos)
        elif key in BACKSPACE_KEYS:
            self.level.remove_triggers_at(self.cursor_pos)
        elif key in MARKER_KEYS:
            self.level.place_trigger(self.cursor_pos, MARKER_KEYS[key].value)
        else:
            return False
        return True

    # -------------------------------------------------------------------------
    # Widget contract
    # -------------------------------------------------------------------------

    def update(self) -> UiEvent | None:
        if self.mode == EditorMode.PLAY:
            return self.handle_test_play(self.test_runner.update())
        if self.mode == EditorMode.VIEW and self.selecting_rect:
            size = self.cursor_pos - self.selection_rect.pos + V2(1, 1)
            if size != self.selection_rect.size:
                self.selection_rect = Rectangle(self.selection_rect.pos, size)
                self.mark_refresh(True)
        return None

    def child_widgets(self) -> list[Widget]:
        return [self.test_runner]

    def need_refresh(self) -> bool:
        if self.mode == EditorMode.PLAY and self.test_runner.need_refresh():
            return True
        return super().need_refresh()

    def resize(self, bounds: Rectangle) -> None:
        self.screen_size = bounds.size
        super().resize(bounds)

    def print(self, ui: UiContext) -> None:
        if not self.need_refresh():
            return
        match self.mode:
            case EditorMode.ERROR_MESSAGE:
                pass
            case EditorMode.PLAY:
                self.test_runner.mark_refresh(True)
                self.test_runner.print(ui)
            case _:
                ui.terminal.clear()
                self.print_level(ui)
        self.mark_refresh(False)

    def print_level(self, ui: UiContext) -> None:
        corner, size = self.view_corner, self.screen_size
        ui.terminal.show_cursor(False)
        draw_level(ui, self.level, corner, size)
        draw_frame(ui, self.level, corner, size)

        if self.selecting_rect:
            outline_rect(ui, self.selection_rect.normalized(), SELECTION, corner, size)

        if self.show_triggers:
            draw_at(ui, self.level.start, START_MARKER("$"), corner, size)
            for trigger in self.level.triggers:
                draw_at(ui, trigger.pos, TRIGGER_MARKER("?"), corner, size)

        self.print_status_bar(ui)

        if Rectangle(corner, size).contains(self.cursor_pos):
            ui.goto(self.cursor_pos - corner)
            ui.terminal.show_cursor(True, underscore=True)

    def status_text(self) -> str:
        parts = [f"mode: {self.mode.value} "]
        if self.mode == EditorMode.PAINT:
            parts.append(f" color: {self.paint_mode.value} ")
        if self.mode == EditorMode.SET_MARKERS:
            parts.extend(f" here: {t.id}" for t in self.level.triggers if t.pos == self.cursor_pos)
        parts.append(HELP.get(self.mode, ""))
        return "".join(parts)

    def print_status_bar(self, ui: UiContext) -> None:
        width, height = self.screen_size.x, self.screen_size.y
        if height < 2 or width < 1:
            return
        ui.goto(V2(0, height - 2))
        ui.terminal.write(STATUS_BAR(self.status_text()[:width].ljust(width)))

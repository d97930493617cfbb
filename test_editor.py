"""
Tests for the level editor's modes and tools.
"""

from pathlib import Path

import pytest
import readchar

from conftest import FakeTerminal
from editor import (
    BLANK_CELL,
    EditorMode,
    LevelEditor,
    PaintMode,
    apply_paint,
    blank_level,
)
from geometry import Rectangle, V2
from level import Cell, CellColor, ExitId, Level, Trigger
from level_io import load_level, save_level
from terminal import KeyEvent, MouseEvent
from ui import UiContext, UiEventType


def press(editor: LevelEditor, ui: UiContext, *keys: str, shift: bool = False) -> None:
    for key in keys:
        editor.input(KeyEvent(key, shift=shift), ui)


def letter_at(editor: LevelEditor, x: int, y: int) -> str:
    cell = editor.level[V2(x, y)]
    return "." if cell.empty else cell.letter


@pytest.fixture
def editor(ui: UiContext) -> LevelEditor:
    return LevelEditor(ui, blank_level(V2(8, 8)))


# =============================================================================
# Paint presets
# =============================================================================


class TestApplyPaint:
    """Tests for the paint presets."""

    def test_normal_presets(self) -> None:
        cell = Cell("a", CellColor.LIGHT_GRAY, CellColor.DARK_GRAY)
        assert apply_paint(cell, PaintMode.WHITE_BACKGROUND_NORMAL) == Cell("a", CellColor.BLACK, CellColor.WHITE)
        assert apply_paint(cell, PaintMode.BLACK_BACKGROUND_NORMAL) == Cell("a", CellColor.WHITE, CellColor.BLACK)

    def test_invert_only_touches_base_colours(self) -> None:
        assert apply_paint(Cell("a", CellColor.WHITE, CellColor.BLACK), PaintMode.INVERT) == Cell(
            "a", CellColor.BLACK, CellColor.WHITE
        )
        assert apply_paint(Cell("a", CellColor.LIGHT_GRAY, CellColor.BLACK), PaintMode.INVERT) == Cell(
            "a", CellColor.LIGHT_GRAY, CellColor.WHITE
        )

    def test_single_channel_tints(self) -> None:
        cell = Cell("a", CellColor.WHITE, CellColor.BLACK)
        assert apply_paint(cell, PaintMode.TEXT_LIGHT_GRAY).foreground == CellColor.LIGHT_GRAY
        assert apply_paint(cell, PaintMode.TEXT_DARK_GRAY).foreground == CellColor.DARK_GRAY
        assert apply_paint(cell, PaintMode.BACKGROUND_GRAY) == Cell("a", CellColor.WHITE, CellColor.LIGHT_GRAY)
        assert apply_paint(cell, PaintMode.BACKGROUND_DARK_GRAY).background == CellColor.DARK_GRAY


# =============================================================================
# Modes
# =============================================================================


class TestPaintMode:
    """Tests for painting through key input."""

    def test_paint_start_cell_from_file(self, tmp_path: Path, ui: UiContext) -> None:
        """Load a 5x5 level, tint the start cell's background and read it back."""
        level = blank_level(V2(5, 5))
        level.start = V2(2, 2)
        path = tmp_path / "level.yaml"
        save_level(level, path)

        editor = LevelEditor.from_path(ui, path)
        press(editor, ui, readchar.key.F5)
        assert editor.mode == EditorMode.PAINT
        press(editor, ui, readchar.key.RIGHT, readchar.key.RIGHT, readchar.key.DOWN, readchar.key.DOWN)
        assert editor.cursor_pos == editor.level.start
        press(editor, ui, "n", " ")

        cell = editor.level[V2(2, 2)]
        assert cell.background == CellColor.LIGHT_GRAY
        assert cell.foreground == CellColor.WHITE

    def test_paint_while_moving(self, editor: LevelEditor, ui: UiContext) -> None:
        press(editor, ui, readchar.key.F5, "x", "d", "d")
        assert editor.cursor_pos == V2(2, 0)
        assert editor.level[V2(0, 0)] == BLANK_CELL
        assert editor.level[V2(1, 0)] == Cell("\0", CellColor.WHITE, CellColor.BLACK)
        press(editor, ui, "z", "s")
        assert editor.level[V2(2, 1)].background == CellColor.WHITE

    def test_escape_returns_to_view(self, editor: LevelEditor, ui: UiContext) -> None:
        press(editor, ui, readchar.key.F5, readchar.key.ESC)
        assert editor.mode == EditorMode.VIEW

    def test_status_shows_paint_mode(self, editor: LevelEditor, ui: UiContext) -> None:
        press(editor, ui, readchar.key.F5, "c")
        assert "color: Invert" in editor.status_text()


class TestTextMode:
    """Tests for writing glyphs."""

    def test_type_wrap_and_erase(self, editor: LevelEditor, ui: UiContext) -> None:
        editor.cursor_pos = V2(1, 1)
        press(editor, ui, readchar.key.F3)
        assert editor.mode == EditorMode.WRITE_TEXT
        press(editor, ui, "h", "i", readchar.key.ENTER, "w", "s")
        assert letter_at(editor, 1, 1) == "h"
        assert letter_at(editor, 2, 1) == "i"
        assert letter_at(editor, 1, 2) == "w"
        assert letter_at(editor, 2, 2) == "s"
        assert editor.cursor_pos == V2(3, 2)

        press(editor, ui, readchar.key.BACKSPACE)
        assert letter_at(editor, 2, 2) == "."
        assert editor.cursor_pos == V2(2, 2)

    def test_text_keeps_colours(self, editor: LevelEditor, ui: UiContext) -> None:
        press(editor, ui, "e", "t")
        assert editor.level[V2(0, 0)] == Cell("t", CellColor.WHITE, CellColor.BLACK)

    def test_uppercase_is_written(self, editor: LevelEditor, ui: UiContext) -> None:
        press(editor, ui, "e")
        press(editor, ui, "R", shift=True)
        assert letter_at(editor, 0, 0) == "R"
        assert editor.level.size == V2(8, 8)

    def test_wrap_column_from_f4(self, editor: LevelEditor, ui: UiContext) -> None:
        editor.cursor_pos = V2(3, 0)
        press(editor, ui, readchar.key.F4)
        assert editor.mode == EditorMode.VIEW
        editor.cursor_pos = V2(5, 4)
        editor.set_mode(EditorMode.WRITE_TEXT)
        press(editor, ui, readchar.key.ENTER)
        assert editor.cursor_pos == V2(3, 5)


class TestMarkerMode:
    """Tests for the start point and triggers."""

    def test_place_replace_remove(self, editor: LevelEditor, ui: UiContext) -> None:
        editor.cursor_pos = V2(4, 4)
        press(editor, ui, readchar.key.F6, "v")
        assert editor.level.triggers == [Trigger(V2(4, 4), ExitId.FINISH.value)]
        assert "here: exit0" in editor.status_text()

        press(editor, ui, "x")
        assert editor.level.triggers == [Trigger(V2(4, 4), ExitId.BRANCH_A.value)]

        press(editor, ui, readchar.key.BACKSPACE)
        assert editor.level.triggers == []

    def test_set_start(self, editor: LevelEditor, ui: UiContext) -> None:
        editor.cursor_pos = V2(3, 2)
        press(editor, ui, readchar.key.F6, "z")
        assert editor.level.start == V2(3, 2)

    def test_start_outside_level_is_ignored(self, editor: LevelEditor, ui: UiContext) -> None:
        editor.cursor_pos = V2(20, 2)
        press(editor, ui, readchar.key.F6, "z")
        assert editor.level.start == V2(0, 0)


class TestViewMode:
    """Tests for navigation, selection and level resizing."""

    def test_arrow_keys_move_cursor(self, editor: LevelEditor, ui: UiContext) -> None:
        press(editor, ui, readchar.key.RIGHT, readchar.key.DOWN, readchar.key.DOWN)
        assert editor.cursor_pos == V2(1, 2)

    def test_pan_and_toggle_triggers(self, editor: LevelEditor, ui: UiContext) -> None:
        corner = editor.view_corner
        press(editor, ui, "d", "s")
        assert editor.view_corner == corner + V2(1, 1)
        press(editor, ui, "t")
        assert not editor.show_triggers

    def test_mouse_click_moves_cursor(self, editor: LevelEditor, ui: UiContext) -> None:
        editor.input(MouseEvent(column=5, row=3), ui)
        assert editor.cursor_pos == V2(5, 3)
        editor.input(MouseEvent(column=1, row=1, pressed=False), ui)
        assert editor.cursor_pos == V2(5, 3)

    def test_resize_level(self, editor: LevelEditor, ui: UiContext) -> None:
        editor.level.place_trigger(V2(7, 7), "exit0")
        editor.cursor_pos = V2(6, 5)
        press(editor, ui, "R", shift=True)
        assert editor.level.size == V2(6, 5)
        assert editor.level.triggers == []

        editor.cursor_pos = V2(10, 9)
        press(editor, ui, "R", shift=True)
        assert editor.level.size == V2(10, 9)
        assert editor.level[V2(9, 8)] == BLANK_CELL

    def test_resize_below_minimum_is_ignored(self, editor: LevelEditor, ui: UiContext) -> None:
        editor.cursor_pos = V2(4, 6)
        press(editor, ui, "R", shift=True)
        assert editor.level.size == V2(8, 8)


class TestSelection:
    """Tests for the rectangle tools."""

    def make_editor(self, ui: UiContext) -> LevelEditor:
        editor = LevelEditor(ui, blank_level(V2(8, 8)))
        for pos, letter in ((V2(0, 0), "a"), (V2(1, 0), "b"), (V2(0, 1), "c"), (V2(1, 1), "d")):
            editor.level.set(pos, BLANK_CELL.with_letter(letter))
        return editor

    def select(self, editor: LevelEditor, ui: UiContext, anchor: V2, corner: V2) -> None:
        editor.cursor_pos = anchor
        press(editor, ui, "m")
        editor.cursor_pos = corner
        editor.update()
        press(editor, ui, "m")

    def test_live_selection_follows_cursor(self, ui: UiContext) -> None:
        editor = self.make_editor(ui)
        editor.cursor_pos = V2(3, 3)
        press(editor, ui, "m")
        assert editor.selecting_rect
        editor.cursor_pos = V2(1, 1)
        editor.update()
        assert editor.selection_rect.size == V2(-1, -1)
        press(editor, ui, readchar.key.ENTER)
        assert not editor.selecting_rect
        assert editor.selection_rect == Rectangle(V2(1, 1), V2(3, 3))

    def test_copy(self, ui: UiContext) -> None:
        editor = self.make_editor(ui)
        self.select(editor, ui, V2(0, 0), V2(1, 1))
        editor.cursor_pos = V2(3, 3)
        press(editor, ui, "k")
        assert [letter_at(editor, x, y) for x, y in ((3, 3), (4, 3), (3, 4), (4, 4))] == ["a", "b", "c", "d"]
        assert letter_at(editor, 0, 0) == "a"

    def test_move(self, ui: UiContext) -> None:
        editor = self.make_editor(ui)
        self.select(editor, ui, V2(0, 0), V2(1, 1))
        editor.cursor_pos = V2(1, 1)
        press(editor, ui, "l")
        assert letter_at(editor, 0, 0) == "."
        assert editor.level[V2(0, 0)].background == CellColor.WHITE
        assert [letter_at(editor, x, y) for x, y in ((1, 1), (2, 1), (1, 2), (2, 2))] == ["a", "b", "c", "d"]

    def test_fill(self, ui: UiContext) -> None:
        editor = self.make_editor(ui)
        self.select(editor, ui, V2(0, 0), V2(2, 1))
        press(editor, ui, "0")
        assert all(letter_at(editor, x, y) == "a" for x in range(3) for y in range(2))
        assert letter_at(editor, 0, 2) == "."


# =============================================================================
# Test play
# =============================================================================


class TestPlayMode:
    """Tests for test play inside the editor."""

    def make_editor(self, ui: UiContext) -> LevelEditor:
        level = blank_level(V2(6, 3))
        level.set(V2(1, 0), BLANK_CELL.with_letter("o"))
        level.place_trigger(V2(4, 2), ExitId.FINISH.value)
        return LevelEditor(ui, level)

    def test_play_uses_a_copy(self, ui: UiContext) -> None:
        editor = self.make_editor(ui)
        press(editor, ui, readchar.key.F8)
        assert editor.mode == EditorMode.PLAY
        assert editor.test_runner.pos == V2(0, 0)
        press(editor, ui, "d")
        assert editor.test_runner.pos == V2(1, 0)
        assert editor.test_runner.level[V2(2, 0)].letter == "o"
        assert letter_at(editor, 1, 0) == "o"
        assert letter_at(editor, 2, 0) == "."

    def test_escape_ends_play(self, ui: UiContext) -> None:
        editor = self.make_editor(ui)
        press(editor, ui, readchar.key.F8, readchar.key.ESC)
        assert editor.mode == EditorMode.VIEW

    def test_shift_f8_starts_at_cursor(self, ui: UiContext) -> None:
        editor = self.make_editor(ui)
        editor.cursor_pos = V2(3, 2)
        press(editor, ui, readchar.key.F8, shift=True)
        assert editor.mode == EditorMode.PLAY
        assert editor.test_runner.pos == V2(3, 2)

    def test_exit_returns_to_view(self, ui: UiContext) -> None:
        """Reaching an exit resumes editing; the editor itself keeps running."""
        editor = self.make_editor(ui)
        editor.cursor_pos = V2(3, 2)
        press(editor, ui, readchar.key.F8, shift=True)
        press(editor, ui, "d")
        event = editor.update()
        assert editor.mode == EditorMode.VIEW
        assert event is not None
        assert event.id == editor.id
        assert event.type == UiEventType.CHANGED

    def test_play_input_reaches_runner_only(self, ui: UiContext) -> None:
        editor = self.make_editor(ui)
        press(editor, ui, readchar.key.F8, "e")
        assert editor.mode == EditorMode.PLAY
        assert editor.level.data == self.make_editor(ui).level.data


# =============================================================================
# Saving and the message overlay
# =============================================================================


class TestSave:
    """Tests for saving through the message overlay."""

    def test_save(self, tmp_path: Path, terminal: FakeTerminal, ui: UiContext) -> None:
        path = tmp_path / "new.yaml"
        editor = LevelEditor.from_path(ui, path)
        assert editor.level.size == V2(250, 250)
        editor.level.resize(6, 6, BLANK_CELL)
        editor.level.set(V2(2, 2), BLANK_CELL.with_letter("k"))

        press(editor, ui, readchar.key.F9)
        assert editor.mode == EditorMode.ERROR_MESSAGE
        assert not terminal.fullscreen
        assert "Saved!" in terminal.messages[-1]
        assert load_level(path) == editor.level

        press(editor, ui, "q")
        assert editor.mode == EditorMode.VIEW
        assert terminal.fullscreen

    def test_save_without_path(self, terminal: FakeTerminal, ui: UiContext) -> None:
        editor = LevelEditor(ui, Level(5, 5))
        press(editor, ui, readchar.key.F9)
        assert editor.mode == EditorMode.ERROR_MESSAGE
        assert "Can't save, no path specified" in terminal.messages[-1]

    def test_save_io_failure(self, tmp_path: Path, terminal: FakeTerminal, ui: UiContext) -> None:
        editor = LevelEditor(ui, Level(5, 5), tmp_path / "no" / "such" / "dir.yaml")
        press(editor, ui, readchar.key.F9)
        assert editor.mode == EditorMode.ERROR_MESSAGE
        assert "Failed to save" in terminal.messages[-1]

    def test_overlay_ignores_mouse(self, terminal: FakeTerminal, ui: UiContext) -> None:
        editor = LevelEditor(ui, Level(5, 5))
        press(editor, ui, readchar.key.F9)
        editor.input(MouseEvent(column=1, row=1), ui)
        assert editor.mode == EditorMode.ERROR_MESSAGE


class TestRendering:
    """Tests for what the editor draws."""

    def test_status_bar(self, editor: LevelEditor, terminal: FakeTerminal, ui: UiContext) -> None:
        editor.print(ui)
        output = "".join(terminal.output)
        assert "mode: View" in output
        assert "<0,10>" in output
        assert not editor.need_refresh()

    def test_runs_under_main_loop(self, editor: LevelEditor, terminal: FakeTerminal, ui: UiContext) -> None:
        terminal.events.extend([KeyEvent(readchar.key.F5), KeyEvent("n"), KeyEvent(" "), KeyEvent(readchar.key.CTRL_C)])
        ui.run(editor)
        assert editor.level[V2(0, 0)].background == CellColor.LIGHT_GRAY

"""
Drawing a level viewport onto the terminal.

Cell colours are rendered through rich Styles; the editor's decorations
(level frame, selection outline, start/trigger markers, status bar) are
coloured with simple_chalk.
"""

from __future__ import annotations

from typing import Callable

import simple_chalk as chalk  # type: ignore[import-untyped]
from rich.style import Style

from geometry import Rectangle, V2
from level import Cell, CellColor, Level
from ui import UiContext

RICH_COLORS = {
    CellColor.BLACK: "black",
    CellColor.WHITE: "bright_white",
    CellColor.LIGHT_GRAY: "grey70",
    CellColor.DARK_GRAY: "grey37",
}

_STYLES: dict[tuple[CellColor, CellColor], Style] = {
    (fg, bg): Style(color=RICH_COLORS[fg], bgcolor=RICH_COLORS[bg])
    for fg in CellColor
    for bg in CellColor
}

FRAME: Callable[[str], str] = chalk.bgRed.black
SELECTION: Callable[[str], str] = chalk.bgRed.black
START_MARKER: Callable[[str], str] = chalk.green
TRIGGER_MARKER: Callable[[str], str] = chalk.red
STATUS_BAR: Callable[[str], str] = chalk.bgWhite.black


def styled(letter: str, foreground: CellColor, background: CellColor) -> str:
    """ANSI-styled single character."""
    return _STYLES[(foreground, background)].render(letter)


def render_cell(cell: Cell, letter: str | None = None) -> str:
    """A cell as it appears on screen, optionally with a different glyph."""
    if letter is None:
        letter = " " if cell.empty else cell.letter
    return styled(letter, cell.foreground, cell.background)


def view_rect(view_corner: V2, screen_size: V2) -> Rectangle:
    return Rectangle(view_corner, screen_size)


def keep_in_view(pos: V2, view_corner: V2, screen_size: V2, padding: int) -> V2:
    """
    Scroll the view so `pos` sits inside the view shrunk by `padding`.

    Each axis is handled on its own. When `pos` is outside the inner band
    the corner moves so that exactly `padding` cells remain between `pos`
    and the screen edge it crossed. Returns the (possibly unchanged) corner.
    """
    x, y = view_corner.x, view_corner.y

    pad_x = max(0, min(padding, (screen_size.x - 1) // 2))
    if pos.x < x + pad_x:
        x = pos.x - pad_x
    elif pos.x > x + screen_size.x - 1 - pad_x:
        x = pos.x + pad_x + 1 - screen_size.x

    pad_y = max(0, min(padding, (screen_size.y - 1) // 2))
    if pos.y < y + pad_y:
        y = pos.y - pad_y
    elif pos.y > y + screen_size.y - 1 - pad_y:
        y = pos.y + pad_y + 1 - screen_size.y

    return V2(x, y)


def draw_level(
    ui: UiContext,
    level: Level,
    view_corner: V2,
    screen_size: V2,
    clip_to_level: bool = False,
) -> None:
    """
    Draw the visible part of `level` row by row.

    Positions outside the level draw as the empty cell unless
    `clip_to_level` is set, in which case they are left untouched.
    """
    bounds = level.bounds
    for y in range(screen_size.y):
        line: list[str] = []
        start_x: int | None = None
        for x in range(screen_size.x):
            pos = V2(x, y) + view_corner
            if clip_to_level and not bounds.contains(pos):
                if line:
                    ui.goto(V2(start_x or 0, y))
                    ui.terminal.write("".join(line))
                    line = []
                start_x = None
                continue
            if start_x is None:
                start_x = x
            line.append(render_cell(level[pos]))
        if line:
            ui.goto(V2(start_x or 0, y))
            ui.terminal.write("".join(line))


def draw_at(
    ui: UiContext,
    pos: V2,
    text: str,
    view_corner: V2,
    screen_size: V2,
) -> None:
    """Write pre-styled `text` at level position `pos` if it is visible."""
    if not view_rect(view_corner, screen_size).contains(pos):
        return
    ui.goto(pos - view_corner)
    ui.terminal.write(text)


def outline_rect(
    ui: UiContext,
    rect: Rectangle,
    colorize: Callable[[str], str],
    view_corner: V2,
    screen_size: V2,
    letter: str = "#",
) -> None:
    for pos in rect.points():
        if pos.x in (rect.left, rect.right) or pos.y in (rect.top, rect.bottom):
            draw_at(ui, pos, colorize(letter), view_corner, screen_size)


def draw_frame(ui: UiContext, level: Level, view_corner: V2, screen_size: V2) -> None:
    """Outline the level one cell outside its bounds."""
    outline_rect(ui, level.bounds.grow(1), FRAME, view_corner, screen_size, letter=" ")

"""
Playing levels: the single-level puzzle simulation and the level sequence.

Movement rules (LevelRunner.walk), in order:
- The actor never leaves the grid.
- Within the actor's background colour the actor walks onto empty cells,
  pushes base-coloured glyphs one cell further (onto an empty cell of the
  same background, or onto a matching glyph on a different background,
  which clears both), and walks through light-gray glyphs.
- Across a change of base background the actor may only step onto an '@'
  glyph, swapping places with it.
"""

from __future__ import annotations

import logging
from pathlib import Path

import readchar

from geometry import Direction, Rectangle, V2
from level import ACTOR_LETTER, BRANCH_EXITS, CellColor, ExitId, Level, is_base_color
from level_io import LevelList, LevelLoadError, load_level
from level_render import draw_at, draw_level, keep_in_view, render_cell
from terminal import InputEvent, KeyEvent
from ui import UiContext, UiEvent, UiEventType, Widget

logger = logging.getLogger(__name__)

VIEW_PADDING = 5

FINISHED_MESSAGE = "Thank you for playing the game"

MOVE_KEYS = {
    "w": Direction.N,
    "s": Direction.S,
    "a": Direction.W,
    "d": Direction.E,
    readchar.key.UP: Direction.N,
    readchar.key.DOWN: Direction.S,
    readchar.key.LEFT: Direction.W,
    readchar.key.RIGHT: Direction.E,
}
RESTART_KEY = "r"


# =============================================================================
# Single level
# =============================================================================


class LevelRunner(Widget):
    """Plays one level: moves the actor, resolves pushes, watches triggers."""

    def __init__(self, ui: UiContext, level: Level | None = None) -> None:
        super().__init__(ui)
        self.level = level.clone() if level is not None else Level(10, 10)
        self.backup_level = self.level.clone()
        self.pos = self.level.start
        self.view_corner = V2(0, 0)
        self.screen_size = ui.buffer_size()

    def start(self) -> None:
        """Put the actor on the start point and snapshot the level for restart."""
        self.pos = self.level.start
        self.backup_level = self.level.clone()
        self.view_corner = V2(0, 0)
        self.mark_refresh(True)

    def restart(self) -> None:
        self.level = self.backup_level.clone()
        self.start()

    def walk(self, direction: Direction) -> None:
        """Try to move the actor one cell; see the module docstring for the rules."""
        d = direction.delta
        target = self.pos + d
        beyond = target + d
        level = self.level
        if not level.contains(target):
            return

        here = level[self.pos]
        target_cell = level[target]
        next_cell = level[beyond]

        if target_cell.background == here.background:
            if target_cell.empty:
                self.pos = target
                return

            if is_base_color(target_cell.foreground) and level.contains(beyond):
                if next_cell.background == target_cell.background and next_cell.empty:
                    # Slide the glyph along
                    level.set(beyond, next_cell.with_letter(target_cell.letter))
                    level.set(target, target_cell.with_letter(" "))
                    self.pos = target
                    return
                if next_cell.background != target_cell.background and next_cell.letter == target_cell.letter:
                    # Matching glyph across the colour edge: both vanish
                    level.set(beyond, next_cell.with_letter(" "))
                    level.set(target, target_cell.with_letter(" "))
                    self.pos = target
                    return

            if target_cell.foreground == CellColor.LIGHT_GRAY:
                self.pos = target
        elif (
            is_base_color(here.background)
            and is_base_color(target_cell.background)
            and target_cell.letter == ACTOR_LETTER
        ):
            level.set(self.pos, here.with_letter(ACTOR_LETTER))
            level.set(target, target_cell.with_letter(" "))
            self.pos = target

    def keep_actor_in_view(self) -> bool:
        """Scroll to follow the actor; True if the view moved."""
        corner = keep_in_view(self.pos, self.view_corner, self.screen_size, VIEW_PADDING)
        if corner == self.view_corner:
            return False
        self.view_corner = corner
        return True

    def move(self, direction: Direction) -> None:
        self.walk(direction)
        self.keep_actor_in_view()
        self.mark_refresh(True)

    def print(self, ui: UiContext) -> None:
        if not self.need_refresh():
            return
        ui.terminal.clear()
        ui.terminal.show_cursor(False)
        draw_level(ui, self.level, self.view_corner, self.screen_size, clip_to_level=True)
        draw_at(
            ui,
            self.pos,
            render_cell(self.level[self.pos], ACTOR_LETTER),
            self.view_corner,
            self.screen_size,
        )
        self.mark_refresh(False)

    def input(self, event: InputEvent, ui: UiContext) -> UiEvent | None:
        if not isinstance(event, KeyEvent) or not event.plain:
            return None
        if event.key in MOVE_KEYS:
            self.move(MOVE_KEYS[event.key])
            return self.event(UiEventType.CHANGED)
        if event.key == RESTART_KEY:
            self.restart()
            return self.event(UiEventType.CHANGED)
        return None

    def update(self) -> UiEvent | None:
        trigger = self.level.trigger_at(self.pos)
        exit_id = trigger.exit_id if trigger is not None else None
        if exit_id == ExitId.FINISH:
            return self.event(UiEventType.OK)
        if exit_id in BRANCH_EXITS:
            return self.event(UiEventType.RESULT, exit_id)

        if self.keep_actor_in_view():
            self.mark_refresh(True)
            return self.event(UiEventType.CHANGED)
        return None

    def resize(self, bounds: Rectangle) -> None:
        self.screen_size = bounds.size
        super().resize(bounds)


# =============================================================================
# Level sequence
# =============================================================================


class MultiLevelRunner(Widget):
    """
    Plays the levels of a LevelList one after another.

    Any exit from a level advances to the next one. After the last level (or
    a load failure) a message is shown on the normal screen and the runner
    finishes on the next keypress.
    """

    def __init__(self, ui: UiContext, levels: LevelList) -> None:
        super().__init__(ui)
        self.levels = levels
        self.current_level = 0
        self.level_runner = LevelRunner(ui)
        self.message = ""
        self._message_shown = False
        self._can_exit = False
        self.start_next_level()

    @property
    def running(self) -> bool:
        return self.current_level < len(self.levels)

    def load_level(self, path: Path) -> Level | None:
        try:
            return load_level(path)
        except LevelLoadError as exc:
            self.message = str(exc)
            return None

    def start_next_level(self) -> None:
        """Load the level at current_level, or finish the sequence."""
        if not self.running:
            self.message = FINISHED_MESSAGE
            logger.info("Level sequence finished")
            return

        path = self.levels.files[self.current_level]
        level = self.load_level(path)
        if level is None:
            if not self.message:
                self.message = "Failed to load level"
            self.current_level = len(self.levels)
            return

        logger.info("Starting level %d: %s", self.current_level, path)
        self.level_runner.level = level
        self.level_runner.start()

    def handle_level_runner_events(self, event: UiEvent | None) -> UiEvent | None:
        if event is None:
            return None
        if event.id == self.level_runner.id and event.terminal:
            logger.info("Level %d left through %s", self.current_level, event.value or event.type.value)
            self.current_level += 1
            self.start_next_level()
        self.mark_refresh(True)
        return self.event(UiEventType.CHANGED)

    def child_widgets(self) -> list[Widget]:
        return [self.level_runner]

    def print(self, ui: UiContext) -> None:
        if self.running:
            self.level_runner.print(ui)
        elif self.message and not self._message_shown:
            ui.show_message(self.message)
            self._message_shown = True
        self.mark_refresh(False)

    def input(self, event: InputEvent, ui: UiContext) -> UiEvent | None:
        if self.running:
            return self.handle_level_runner_events(self.level_runner.input(event, ui))
        if isinstance(event, KeyEvent) and self._message_shown:
            self._can_exit = True
            return self.event(UiEventType.CHANGED)
        return None

    def need_refresh(self) -> bool:
        return super().need_refresh() or (bool(self.message) and not self._message_shown)

    def update(self) -> UiEvent | None:
        if self.running:
            return self.handle_level_runner_events(self.level_runner.update())
        if self._can_exit or not self.message:
            return self.event(UiEventType.OK)
        return None

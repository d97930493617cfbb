"""
Loading and saving levels as YAML, plus discovery of the level list.

Level file format:

    width: 5
    height: 3
    start: {x: 1, y: 1}
    triggers:
    - {x: 3, y: 1, id: exit0}
    cells:
    - - {letter: '', fg: white, bg: black}
      - ...

The glyph of an empty cell is written as an empty string. Colours use the
CellColor values (black, white, light_gray, dark_gray).

Level list format:

    files:
    - levels/01.yaml
    - levels/02.yaml

Paths in the list are relative to the discovered root directory.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from geometry import V2
from level import EMPTY_LETTER, Cell, CellColor, Level, Trigger

logger = logging.getLogger(__name__)

LEVEL_LIST_NAME = Path("levels") / "levels.yaml"


# =============================================================================
# Errors
# =============================================================================


class LevelFormatError(ValueError):
    """The file parsed as YAML but does not describe a level."""


class LevelLoadError(Exception):
    """A level or level list could not be loaded."""

    def __init__(self, path: Path | str, cause: BaseException) -> None:
        self.path = Path(path)
        self.cause = cause
        super().__init__(f"Failed to load level '{path}': {cause}")


class SaveError(Exception):
    """A save was requested without anywhere to write to."""


class RootNotFoundError(LookupError):
    """No directory containing the level list was found."""


# =============================================================================
# Level <-> plain data
# =============================================================================


def _pos_to_dict(pos: V2) -> dict[str, int]:
    return {"x": pos.x, "y": pos.y}


def _cell_to_dict(cell: Cell) -> dict[str, str]:
    return {
        "letter": "" if cell.letter == EMPTY_LETTER else cell.letter,
        "fg": cell.foreground.value,
        "bg": cell.background.value,
    }


def level_to_dict(level: Level) -> dict[str, Any]:
    """Convert a level to plain data suitable for yaml.safe_dump."""
    return {
        "width": level.width,
        "height": level.height,
        "start": _pos_to_dict(level.start),
        "triggers": [{"x": t.pos.x, "y": t.pos.y, "id": t.id} for t in level.triggers],
        "cells": [[_cell_to_dict(cell) for cell in row] for row in level.data],
    }


def _require(data: dict[str, Any], key: str, where: str) -> Any:
    if not isinstance(data, dict) or key not in data:
        raise LevelFormatError(f"Missing key '{key}' in {where}")
    return data[key]


def _parse_int(value: Any, where: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise LevelFormatError(f"Expected an integer for {where}, got {value!r}")
    return value


def _parse_pos(data: Any, where: str) -> V2:
    return V2(
        _parse_int(_require(data, "x", where), f"{where}.x"),
        _parse_int(_require(data, "y", where), f"{where}.y"),
    )


def _parse_color(value: Any, where: str) -> CellColor:
    try:
        return CellColor(value)
    except ValueError:
        valid = ", ".join(c.value for c in CellColor)
        raise LevelFormatError(
            f"Invalid colour {value!r} at {where}\n"
            f"  Valid colours: {valid}"
        ) from None


def _parse_cell(data: Any, where: str) -> Cell:
    letter = _require(data, "letter", where)
    if letter is None or letter == "":
        letter = EMPTY_LETTER
    letter = str(letter)
    if len(letter) != 1:
        raise LevelFormatError(f"Cell letter must be a single character at {where}, got {letter!r}")
    return Cell(
        letter,
        _parse_color(_require(data, "fg", where), f"{where}.fg"),
        _parse_color(_require(data, "bg", where), f"{where}.bg"),
    )


def level_from_dict(data: Any) -> Level:
    """
    Build a Level from plain data, validating the schema.

    Raises:
        LevelFormatError: if a key is missing, the cell matrix does not match
            the declared size, or a coordinate lies outside the grid.
    """
    if not isinstance(data, dict):
        raise LevelFormatError(f"Expected a mapping at the top level, got {type(data).__name__}")

    width = _parse_int(_require(data, "width", "level"), "width")
    height = _parse_int(_require(data, "height", "level"), "height")
    if width <= 0 or height <= 0:
        raise LevelFormatError(f"Level size must be positive, got {width}x{height}")

    rows = _require(data, "cells", "level")
    if not isinstance(rows, list) or len(rows) != height:
        count = len(rows) if isinstance(rows, list) else 0
        raise LevelFormatError(
            f"Inconsistent cell matrix\n"
            f"  Expected: {height} rows\n"
            f"  Found: {count} rows"
        )

    cells: list[list[Cell]] = []
    for y, row in enumerate(rows):
        if not isinstance(row, list) or len(row) != width:
            count = len(row) if isinstance(row, list) else 0
            raise LevelFormatError(
                f"Inconsistent row length\n"
                f"  Expected: {width} cells\n"
                f"  Row {y}: {count} cells"
            )
        cells.append([_parse_cell(cell, f"cells[{y}][{x}]") for x, cell in enumerate(row)])

    level = Level(width, height, cells)

    start = _parse_pos(_require(data, "start", "level"), "start")
    if not level.contains(start):
        raise LevelFormatError(f"Start point ({start.x}, {start.y}) is outside the {width}x{height} grid")
    level.start = start

    for i, item in enumerate(data.get("triggers") or []):
        pos = _parse_pos(item, f"triggers[{i}]")
        if not level.contains(pos):
            raise LevelFormatError(f"Trigger {i} at ({pos.x}, {pos.y}) is outside the {width}x{height} grid")
        level.triggers.append(Trigger(pos, str(_require(item, "id", f"triggers[{i}]"))))

    return level


# =============================================================================
# Files
# =============================================================================


def load_level(path: Path | str) -> Level:
    """
    Read a level file.

    Raises:
        LevelLoadError: wrapping the I/O, YAML or format failure.
    """
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as f:
            level = level_from_dict(yaml.safe_load(f))
    except (OSError, yaml.YAMLError, LevelFormatError) as exc:
        logger.error("Failed to load level '%s': %s", path, exc)
        raise LevelLoadError(path, exc) from exc
    logger.info("Loaded level '%s' (%dx%d)", path, level.width, level.height)
    return level


def save_level(level: Level, path: Path | str) -> None:
    """Write a level file, replacing any existing one."""
    path = Path(path)
    with path.open("w", encoding="utf-8") as f:
        yaml.safe_dump(level_to_dict(level), f, sort_keys=False, allow_unicode=True)
    logger.info("Saved level '%s'", path)


@dataclass(frozen=True)
class LevelList:
    """Ordered level files making up the game."""

    files: tuple[Path, ...]

    def __len__(self) -> int:
        return len(self.files)


def load_level_list(root: Path) -> LevelList:
    """
    Read the level list under `root`, resolving entries against `root`.

    Raises:
        LevelLoadError: if the list is missing or malformed.
    """
    path = root / LEVEL_LIST_NAME
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        files = _require(data, "files", "level list")
        if not isinstance(files, list):
            raise LevelFormatError(f"'files' must be a list, got {type(files).__name__}")
    except (OSError, yaml.YAMLError, LevelFormatError) as exc:
        logger.error("Failed to load level list '%s': %s", path, exc)
        raise LevelLoadError(path, exc) from exc

    levels = LevelList(tuple(root / str(name) for name in files))
    logger.info("Level list '%s' has %d levels", path, len(levels))
    return levels


def find_root(start_dirs: list[Path]) -> Path:
    """
    Find the game's root directory.

    Each start directory and then its ancestors are checked in order; the
    first one containing levels/levels.yaml wins.

    Raises:
        RootNotFoundError: if none of them does.
    """
    for start in start_dirs:
        for candidate in (start, *start.parents):
            if (candidate / LEVEL_LIST_NAME).is_file():
                logger.debug("Found root directory '%s'", candidate)
                return candidate
    searched = ", ".join(str(d) for d in start_dirs)
    raise RootNotFoundError(f"Could not find '{LEVEL_LIST_NAME}' above any of: {searched}")

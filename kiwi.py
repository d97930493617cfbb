"""
Command-line entry point: play the level sequence or edit a level file.

    kiwi                 play levels/levels.yaml under the discovered root
    kiwi edit PATH       edit (or create) the level file at PATH
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from editor import LevelEditor
from level_io import LevelLoadError, RootNotFoundError, find_root, load_level_list
from runner import MultiLevelRunner
from terminal import Terminal
from ui import UiContext, Widget

logger = logging.getLogger(__name__)

ROOT_HINT = "Run kiwi from a checkout of the game, or pass --root DIR"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="kiwi", description="Colour-pushing puzzle game with a level editor")
    parser.add_argument(
        "--root",
        type=Path,
        help=(
            "Directory containing levels/levels.yaml (default: search upwards from the current "
            "directory, then from the directory holding the kiwi modules)"
        ),
    )
    parser.add_argument("--log-file", type=Path, help="Write log messages to this file")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level when --log-file is given (default: INFO)",
    )
    subcommands = parser.add_subparsers(dest="command")
    edit = subcommands.add_parser("edit", help="Edit level file")
    edit.add_argument("path", type=Path, help="File path for the level, used for loading and saving")
    return parser


def configure_logging(log_file: Path | None, level: str) -> None:
    # The screen belongs to the game while it runs, so logs only ever go to a file
    if log_file is None:
        logging.basicConfig(handlers=[logging.NullHandler()])
        return
    logging.basicConfig(
        filename=log_file,
        level=getattr(logging, level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def run_widget(ui: UiContext, widget: Widget) -> None:
    with ui.terminal.session():
        try:
            ui.run(widget)
        except KeyboardInterrupt:
            logger.info("Interrupted by user")


def run_editor(path: Path) -> None:
    ui = UiContext(Terminal())
    editor = LevelEditor.from_path(ui, path)
    run_widget(ui, editor)


def search_dirs() -> list[Path]:
    """Where to look for the level list when --root is not given."""
    # Level files ship with a checkout, not with the installed modules
    return [Path.cwd(), Path(__file__).resolve().parent]


def run_levels(root: Path | None) -> None:
    if root is None:
        root = find_root(search_dirs())
    levels = load_level_list(root)
    ui = UiContext(Terminal())
    runner = MultiLevelRunner(ui, levels)
    run_widget(ui, runner)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_file, args.log_level)

    try:
        if args.command == "edit":
            run_editor(args.path)
        else:
            run_levels(args.root)
    except RootNotFoundError as exc:
        logger.error("%s", exc)
        print(f"{exc}\n{ROOT_HINT}", file=sys.stderr)
        return 1
    except LevelLoadError as exc:
        logger.error("%s", exc)
        print(exc, file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

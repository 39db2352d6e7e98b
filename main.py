import argparse
import logging
import sys
from pathlib import Path
from typing import get_args

from PySide6.QtWidgets import QApplication

from MaskPyside.widgets import MaskedCodeEditor
from symbol_masks.settings_models import CursorStyleSetting
from symbol_masks.settings_store import JsonSettingsStore
from symbol_masks.ui.controllers import MaskUpdateController, SettingsFileWatcher

APP_NAME = "Symbol Masks"

_LOG = logging.getLogger("symbol_masks")


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="symbol-masks", description="Open a file with symbol masks applied.")
    parser.add_argument("file", nargs="?", help="file to open")
    parser.add_argument("--settings", metavar="PATH", help="JSON settings file with a 'symbol_masks' section")
    parser.add_argument(
        "--cursor-style",
        choices=list(get_args(CursorStyleSetting)),
        help="caret style; overrides the settings file",
    )
    parser.add_argument("--verbose", action="store_true", help="log debug output")
    return parser


def _split_startup_args(argv: list[str]) -> tuple[argparse.Namespace, list[str]]:
    """Separate our options from the ones Qt should see."""
    return _build_arg_parser().parse_known_args(argv)


def main(argv: list[str] | None = None) -> int:
    args, qt_args = _split_startup_args(sys.argv[1:] if argv is None else argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    store = JsonSettingsStore(args.settings)
    store.load()
    if store.last_error:
        _LOG.warning("Using default settings, %s could not be read: %s", args.settings, store.last_error)
    settings = store.symbol_masks()
    if args.cursor_style:
        settings["cursor_style"] = args.cursor_style

    app = QApplication([sys.argv[0], *qt_args])
    app.setStyle("Fusion")
    app.setApplicationName(APP_NAME)

    editor = MaskedCodeEditor()
    editor.cursor_style = settings["cursor_style"]
    if args.file:
        path = Path(args.file).expanduser()
        if path.is_file():
            editor.load_file(path)
        else:
            editor.set_file_path(str(path))
    editor.setWindowTitle(f"{APP_NAME} [{Path(args.file).name if args.file else 'untitled'}]")
    editor.resize(900, 640)

    controller = MaskUpdateController(editor, settings=settings, parent=editor)
    app.aboutToQuit.connect(controller.shutdown)

    if store.persistent:
        watcher = SettingsFileWatcher(store, parent=editor)

        def _apply_reloaded(updated: dict) -> None:
            if args.cursor_style:
                updated["cursor_style"] = args.cursor_style
            editor.cursor_style = updated["cursor_style"]
            controller.update_settings(updated)

        watcher.settingsChanged.connect(_apply_reloaded)

    editor.show()
    return app.exec()


if __name__ == "__main__":
    sys.exit(main())

"""Reload the symbol_masks settings section when its JSON file changes on disk."""

from __future__ import annotations

import logging

from PySide6.QtCore import QFileSystemWatcher, QObject, QTimer, Signal

from symbol_masks.settings_store import JsonSettingsStore

_LOG = logging.getLogger(__name__)


class SettingsFileWatcher(QObject):
    settingsChanged = Signal(object)  # normalized symbol_masks section

    RELOAD_DELAY_MS = 150

    def __init__(self, store: JsonSettingsStore, parent: QObject | None = None):
        super().__init__(parent)
        self._store = store
        self._current = store.symbol_masks()
        self._watcher = QFileSystemWatcher(self)
        self._watcher.fileChanged.connect(self._on_file_changed)
        self._watcher.directoryChanged.connect(self._on_file_changed)

        self._reload_timer = QTimer(self)
        self._reload_timer.setSingleShot(True)
        self._reload_timer.setInterval(self.RELOAD_DELAY_MS)
        self._reload_timer.timeout.connect(self.reload)
        self._sync_watches()

    @property
    def store(self) -> JsonSettingsStore:
        return self._store

    def watched_paths(self) -> list[str]:
        return [*self._watcher.files(), *self._watcher.directories()]

    def _sync_watches(self) -> None:
        path = self._store.path
        if path is None:
            return
        # Atomic saves replace the file, which drops a file watch; the parent
        # directory watch notices the new file.
        wanted = [str(path.parent)] if path.parent.is_dir() else []
        if path.is_file():
            wanted.append(str(path))
        missing = [p for p in wanted if p not in self.watched_paths()]
        if missing:
            self._watcher.addPaths(missing)

    def _on_file_changed(self, _path: str) -> None:
        self._reload_timer.start()

    def reload(self) -> bool:
        """Re-read the file; emit ``settingsChanged`` when the section differs."""
        self._reload_timer.stop()
        self._store.reload_from_disk()
        self._sync_watches()
        if self._store.last_error:
            _LOG.warning("Ignoring unreadable settings file %s: %s", self._store.path, self._store.last_error)
            return False
        updated = self._store.symbol_masks()
        if updated == self._current:
            return False
        self._current = updated
        _LOG.info("Symbol mask settings reloaded from %s", self._store.path)
        self.settingsChanged.emit(dict(updated))
        return True

"""Tests for reloading settings from disk."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from symbol_masks.settings_store import JsonSettingsStore
from symbol_masks.ui.controllers import SettingsFileWatcher


def write_settings(path: Path, section: dict) -> None:
    path.write_text(json.dumps({"symbol_masks": section}), encoding="utf-8")


@pytest.fixture
def settings_path(tmp_path: Path) -> Path:
    path = tmp_path / "settings.json"
    write_settings(path, {"debounce_ms": 40, "masks": []})
    return path


@pytest.fixture
def watcher(qapp, settings_path: Path):
    store = JsonSettingsStore(settings_path)
    store.load()
    instance = SettingsFileWatcher(store)
    yield instance
    instance.deleteLater()


class TestSettingsFileWatcher:
    """Test change detection on the settings file."""

    def test_watches_file_and_directory(self, watcher, settings_path: Path) -> None:
        watched = {Path(p).resolve() for p in watcher.watched_paths()}
        assert settings_path.resolve() in watched
        assert settings_path.parent.resolve() in watched

    def test_reload_emits_on_change(self, watcher, settings_path: Path) -> None:
        received: list[dict] = []
        watcher.settingsChanged.connect(received.append)
        write_settings(settings_path, {"debounce_ms": 80, "masks": []})
        assert watcher.reload() is True
        assert received[0]["debounce_ms"] == 80

    def test_reload_without_change(self, watcher) -> None:
        received: list[dict] = []
        watcher.settingsChanged.connect(received.append)
        assert watcher.reload() is False
        assert received == []

    def test_invalid_file_is_ignored(self, watcher, settings_path: Path, caplog) -> None:
        received: list[dict] = []
        watcher.settingsChanged.connect(received.append)
        settings_path.write_text("{broken", encoding="utf-8")
        with caplog.at_level(logging.WARNING, logger="symbol_masks.ui.controllers.settings_watcher"):
            assert watcher.reload() is False
        assert received == []
        assert "unreadable" in caplog.text

from __future__ import annotations

import json
from copy import deepcopy
from pathlib import Path
from typing import Any, Mapping

from symbol_masks.settings_models import SymbolMasksSettings, normalize_symbol_masks_settings

SECTION_KEY = "symbol_masks"


def dot_get(data: Mapping[str, Any], key: str, default: Any = None) -> Any:
    if not key:
        return data
    current: Any = data
    for part in key.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return default
        current = current[part]
    return current


class JsonSettingsStore:
    """Read-only view of the ``symbol_masks`` section of a JSON settings file.

    Other top-level keys in the file are ignored. When the file cannot be
    used the previous section stays in effect and ``last_error`` says why.
    """

    def __init__(self, path: Path | str | None) -> None:
        self.path = Path(path) if path else None
        self.data: dict[str, Any] = {SECTION_KEY: {}}
        self.last_error: str | None = None

    @property
    def persistent(self) -> bool:
        return self.path is not None

    def load(self) -> dict[str, Any]:
        self.last_error = None
        if self.path is None or not self.path.exists():
            self.data = {SECTION_KEY: {}}
            return self.data

        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            self.last_error = str(exc)
            return self.data

        if not isinstance(raw, dict):
            self.last_error = f"Settings root in '{self.path}' must be a JSON object, found {type(raw).__name__}."
            return self.data

        section = raw.get(SECTION_KEY, {})
        if not isinstance(section, dict):
            self.last_error = (
                f"'{SECTION_KEY}' in '{self.path}' must be a JSON object, found {type(section).__name__}."
            )
            return self.data

        self.data = {SECTION_KEY: deepcopy(section)}
        return self.data

    def reload_from_disk(self) -> dict[str, Any]:
        return self.load()

    def get(self, key: str, default: Any = None) -> Any:
        return dot_get(self.data, key, default)

    def symbol_masks(self) -> SymbolMasksSettings:
        """The ``symbol_masks`` section merged over defaults and clamped."""
        return normalize_symbol_masks_settings(self.get(SECTION_KEY, {}))

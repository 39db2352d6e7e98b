"""Qt-aware controllers that drive symbol masks from editor events."""

from .mask_update_controller import MaskUpdateController
from .settings_watcher import SettingsFileWatcher

__all__ = ["MaskUpdateController", "SettingsFileWatcher"]

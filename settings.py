"""
settings.py

Tunable limits for the CyberWeaver workspace: zoom range, block geometry,
drawing surface and where the workspace itself is stored.

Settings file location:
    - Windows: %APPDATA%/cyberweaver/settings.toml
    - macOS: ~/Library/Application Support/cyberweaver/settings.toml
    - Linux: ~/.config/cyberweaver/settings.toml

Every field documents its default. A missing or unreadable settings.toml
means all defaults; a partial one fills the gaps with defaults.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import platformdirs

# TOML reading - use tomllib for Python 3.11+, tomli for earlier versions
if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

import tomli_w

APP_NAME = "cyberweaver"

# Global settings manager instance (singleton)
_settings_manager: Optional["SettingsManager"] = None


def get_settings() -> "SettingsManager":
    """Get the global settings manager instance.

    Returns:
        The singleton SettingsManager instance.
    """
    global _settings_manager
    if _settings_manager is None:
        _settings_manager = SettingsManager()
    return _settings_manager


# =============================================================================
# Viewport Settings
# =============================================================================

@dataclass
class ViewportSettings:
    """Pan/zoom behavior settings.

    Defaults:
        min_scale: 0.2
        max_scale: 3.0
        zoom_intensity: 0.08
        width: 800
        height: 600
        fit_margin: 40.0
    """
    min_scale: float = 0.2        # Default: 0.2 (20%)
    max_scale: float = 3.0        # Default: 3.0 (300%)
    zoom_intensity: float = 0.08  # Default: 0.08 (8% per wheel step)
    width: int = 800              # Default: 800 pixels until the view reports its size
    height: int = 600             # Default: 600 pixels
    fit_margin: float = 40.0      # Default: 40.0 logical units around fitted blocks


# =============================================================================
# Block Settings
# =============================================================================

@dataclass
class BlockSettings:
    """Block geometry settings.

    Defaults:
        default_width: 200.0
        default_height: 150.0
        min_width: 40.0
        min_height: 30.0
        header_height: 28.0
        handle_size: 14.0
    """
    default_width: float = 200.0   # Default: 200.0 logical units
    default_height: float = 150.0  # Default: 150.0 logical units
    min_width: float = 40.0        # Default: 40.0 logical units
    min_height: float = 30.0       # Default: 30.0 logical units
    header_height: float = 28.0    # Default: 28.0 logical units
    handle_size: float = 14.0      # Default: 14.0 logical units (resize grip)


# =============================================================================
# Raster (Drawing) Settings
# =============================================================================

@dataclass
class RasterSettings:
    """Freehand drawing surface settings.

    Defaults:
        width: 2000
        height: 1500
        pen_width: 3
        history_limit: 50
        default_color: "#e74c3c"
    """
    width: int = 2000                 # Default: 2000 logical units
    height: int = 1500                # Default: 1500 logical units
    pen_width: int = 3                # Default: 3 logical units
    history_limit: int = 50           # Default: 50 snapshots (0 = unbounded)
    default_color: str = "#e74c3c"    # Default: red


# =============================================================================
# Storage Settings
# =============================================================================

@dataclass
class StorageSettings:
    """Workspace storage settings.

    Defaults:
        directory: "" (platform user data directory)
        file_name: "workspace.json"
        quota_chars: 5000000
    """
    directory: str = ""                # Default: "" -> platformdirs.user_data_dir
    file_name: str = "workspace.json"  # Default: "workspace.json"
    quota_chars: int = 5_000_000       # Default: 5,000,000 characters


# =============================================================================
# Main App Settings
# =============================================================================

@dataclass
class AppSettings:
    """Application settings with default values.

    Attributes:
        viewport: Pan/zoom settings.
        blocks: Block geometry settings.
        raster: Drawing surface settings.
        storage: Workspace storage settings.
    """
    viewport: ViewportSettings = field(default_factory=ViewportSettings)
    blocks: BlockSettings = field(default_factory=BlockSettings)
    raster: RasterSettings = field(default_factory=RasterSettings)
    storage: StorageSettings = field(default_factory=StorageSettings)


# =============================================================================
# Settings Manager
# =============================================================================

class SettingsManager:
    """Reads and writes settings.toml in the per-user config directory.

    Nothing is written until ``save`` or ``ensure_file_complete`` runs, so
    tests can point ``settings_dir`` at a temporary directory.

    Args:
        app_name: Application name used for the config directory.
        settings_dir: Optional override for the config directory.
    """

    def __init__(self, app_name: str = APP_NAME, settings_dir: Optional[Path] = None):
        self.app_name = app_name
        self.settings_dir = Path(settings_dir) if settings_dir else Path(platformdirs.user_config_dir(app_name))
        self.settings_file = self.settings_dir / "settings.toml"
        self.settings = self.load()
        self._needs_save = not self.settings_file.exists()  # Save if file didn't exist

    def ensure_file_complete(self) -> None:
        """Ensure settings file exists with all sections. Call once at startup."""
        if self._needs_save or not self.settings_file.exists():
            self.save()
            self._needs_save = False

    def load(self) -> AppSettings:
        """Load settings from the TOML file.

        Returns:
            AppSettings instance with values from file or defaults if file
            doesn't exist or is invalid.
        """
        if not self.settings_file.exists():
            return AppSettings()

        try:
            with open(self.settings_file, "rb") as f:
                data = tomllib.load(f)

            return self._parse_toml(data)
        except (OSError, tomllib.TOMLDecodeError, AttributeError, TypeError):
            # Unreadable file or a section that is not a table
            return AppSettings()

    def _parse_toml(self, data: Dict[str, Any]) -> AppSettings:
        """Parse TOML data into AppSettings.

        Args:
            data: Parsed TOML dictionary.

        Returns:
            AppSettings instance populated from TOML data.
        """
        settings = AppSettings()

        vp = data.get("viewport", {})
        settings.viewport.min_scale = vp.get("min_scale", settings.viewport.min_scale)
        settings.viewport.max_scale = vp.get("max_scale", settings.viewport.max_scale)
        settings.viewport.zoom_intensity = vp.get("zoom_intensity", settings.viewport.zoom_intensity)
        settings.viewport.width = vp.get("width", settings.viewport.width)
        settings.viewport.height = vp.get("height", settings.viewport.height)
        settings.viewport.fit_margin = vp.get("fit_margin", settings.viewport.fit_margin)

        bl = data.get("blocks", {})
        settings.blocks.default_width = bl.get("default_width", settings.blocks.default_width)
        settings.blocks.default_height = bl.get("default_height", settings.blocks.default_height)
        settings.blocks.min_width = bl.get("min_width", settings.blocks.min_width)
        settings.blocks.min_height = bl.get("min_height", settings.blocks.min_height)
        settings.blocks.header_height = bl.get("header_height", settings.blocks.header_height)
        settings.blocks.handle_size = bl.get("handle_size", settings.blocks.handle_size)

        ra = data.get("raster", {})
        settings.raster.width = ra.get("width", settings.raster.width)
        settings.raster.height = ra.get("height", settings.raster.height)
        settings.raster.pen_width = ra.get("pen_width", settings.raster.pen_width)
        settings.raster.history_limit = ra.get("history_limit", settings.raster.history_limit)
        settings.raster.default_color = ra.get("default_color", settings.raster.default_color)

        st = data.get("storage", {})
        settings.storage.directory = st.get("directory", settings.storage.directory)
        settings.storage.file_name = st.get("file_name", settings.storage.file_name)
        settings.storage.quota_chars = st.get("quota_chars", settings.storage.quota_chars)

        # A reversed range would make clamping meaningless
        if settings.viewport.min_scale <= 0 or settings.viewport.min_scale > settings.viewport.max_scale:
            settings.viewport.min_scale = ViewportSettings.min_scale
            settings.viewport.max_scale = ViewportSettings.max_scale

        return settings

    def save(self) -> None:
        """Save current settings to the TOML file.

        Creates the settings directory if it doesn't exist.
        """
        self.settings_dir.mkdir(parents=True, exist_ok=True)

        data = self._to_toml_dict()

        with open(self.settings_file, "wb") as f:
            tomli_w.dump(data, f)

    def _to_toml_dict(self) -> Dict[str, Any]:
        """Convert settings to a TOML-compatible dictionary structure.

        Returns:
            Dictionary organized by TOML sections.
        """
        s = self.settings
        return {
            "viewport": {
                "min_scale": s.viewport.min_scale,
                "max_scale": s.viewport.max_scale,
                "zoom_intensity": s.viewport.zoom_intensity,
                "width": s.viewport.width,
                "height": s.viewport.height,
                "fit_margin": s.viewport.fit_margin,
            },
            "blocks": {
                "default_width": s.blocks.default_width,
                "default_height": s.blocks.default_height,
                "min_width": s.blocks.min_width,
                "min_height": s.blocks.min_height,
                "header_height": s.blocks.header_height,
                "handle_size": s.blocks.handle_size,
            },
            "raster": {
                "width": s.raster.width,
                "height": s.raster.height,
                "pen_width": s.raster.pen_width,
                "history_limit": s.raster.history_limit,
                "default_color": s.raster.default_color,
            },
            "storage": {
                "directory": s.storage.directory,
                "file_name": s.storage.file_name,
                "quota_chars": s.storage.quota_chars,
            },
        }

    def to_toml(self) -> str:
        """Convert current settings to a TOML-formatted string.

        Returns:
            TOML representation of the current settings.
        """
        data = self._to_toml_dict()
        return tomli_w.dumps(data)

    def get_storage_path(self) -> Path:
        """Get the resolved workspace storage file path.

        Returns:
            Path to the workspace storage file. Falls back to the platform
            user data directory if the storage directory setting is empty.
        """
        st = self.settings.storage
        if st.directory:
            return Path(st.directory) / st.file_name
        return Path(platformdirs.user_data_dir(self.app_name)) / st.file_name

    def get_settings_path(self) -> Path:
        """Get the path to the settings file.

        Returns:
            Path object pointing to the settings file location.
        """
        return self.settings_file

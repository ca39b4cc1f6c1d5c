"""
User preferences for the terminal panel.

Handles the remembered panel height and the colour scheme.
Settings are persisted to JSON in platform-specific config directory.
"""
from __future__ import annotations

import json
import os
import sys
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Literal


@dataclass
class PanelSettings:
    """Persisted panel preferences."""

    panel_height: int = 300
    color_scheme: Literal["dark", "light"] = "dark"

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "PanelSettings":
        """Create settings from dictionary, ignoring unknown keys."""
        valid_keys = {f.name for f in cls.__dataclass_fields__.values()}
        filtered = {k: v for k, v in data.items() if k in valid_keys}
        return cls(**filtered)


def get_config_dir() -> Path:
    """
    Get platform-specific config directory.

    Returns:
        - Windows: %LOCALAPPDATA%/TermPanel
        - macOS: ~/Library/Application Support/TermPanel
        - Linux: $XDG_CONFIG_HOME/termpanel (default ~/.config/termpanel)
    """
    if sys.platform == "win32":
        base = Path(os.environ.get("LOCALAPPDATA", Path.home() / "AppData" / "Local"))
        return base / "TermPanel"
    elif sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "TermPanel"
    else:
        xdg_config = os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config")
        return Path(xdg_config) / "termpanel"


def get_settings_path() -> Path:
    return get_config_dir() / "settings.json"


def load_settings() -> PanelSettings:
    """
    Load settings from disk.

    Returns default settings if file doesn't exist or is invalid.
    """
    settings_path = get_settings_path()

    if not settings_path.exists():
        return PanelSettings()

    try:
        data = json.loads(settings_path.read_text(encoding="utf-8"))
        return PanelSettings.from_dict(data)
    except (json.JSONDecodeError, TypeError, ValueError):
        return PanelSettings()


def save_settings(settings: PanelSettings) -> None:
    settings_path = get_settings_path()
    settings_path.parent.mkdir(parents=True, exist_ok=True)

    settings_path.write_text(
        json.dumps(settings.to_dict(), indent=2),
        encoding="utf-8"
    )


def update_setting(key: str, value) -> PanelSettings:
    """
    Update a single setting and save.

    Raises:
        KeyError: If key is not a valid setting
    """
    if key not in PanelSettings.__dataclass_fields__:
        raise KeyError(f"Unknown setting: {key}")

    settings = load_settings()
    setattr(settings, key, value)
    save_settings(settings)
    return settings

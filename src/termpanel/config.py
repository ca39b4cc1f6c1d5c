from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from .settings import get_config_dir


class PanelConfig(BaseModel):
    """Static configuration of the terminal panel."""

    # None: $SHELL (or %COMSPEC% on Windows)
    shell: Optional[str] = Field(default=None)
    login_shell: bool = True

    font_family: str = "Menlo"
    font_size: int = Field(default=13, ge=6, le=28)
    scrollback: int = Field(default=10000, ge=0)

    # Panel height bounds, in pixels
    min_height: int = Field(default=100, ge=50)
    max_height: int = Field(default=800, ge=50)
    default_height: int = 300

    # Pixels lost to the surface's inner padding when fitting
    padding: int = Field(default=8, ge=0)
    min_rows: int = Field(default=1, ge=1)
    min_cols: int = Field(default=2, ge=1)

    frame_delay_ms: int = Field(default=16, ge=0)

    @model_validator(mode="after")
    def _check_heights(self) -> "PanelConfig":
        if self.min_height > self.max_height:
            raise ValueError("min_height must not exceed max_height")
        return self

    def clamp_height(self, height: int) -> int:
        return min(self.max_height, max(self.min_height, int(height)))


def config_path() -> Path:
    return get_config_dir() / "config.json"


def load_config() -> PanelConfig:
    path = config_path()
    if not path.exists():
        return PanelConfig()
    data = json.loads(path.read_text(encoding="utf-8"))
    return PanelConfig(**data)


def save_config(cfg: PanelConfig) -> None:
    path = config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(cfg.model_dump_json(indent=2), encoding="utf-8")

"""
Terminal colour themes and font metrics.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Optional, Tuple, Union

ColorScheme = Literal["dark", "light"]

# pyte colour names, in ANSI order
ANSI_NAMES = (
    "black", "red", "green", "brown", "blue", "magenta", "cyan", "white",
)


@dataclass(frozen=True)
class Theme:
    name: str
    background: str
    foreground: str
    cursor: str
    selection: str
    # 8 normal + 8 bright
    ansi: Tuple[str, ...] = field(default_factory=tuple)

    def color(self, value: Union[str, int, None], default: Optional[str] = None) -> Optional[str]:
        """Resolve a pyte colour (name, 256-index or hex) to ``#rrggbb``."""
        if value is None or value == "default":
            return default
        if isinstance(value, int):
            return self._indexed(value)
        text = str(value).lower()
        bright = text.startswith("bright")
        base = text[len("bright"):] if bright else text
        # pyte spells yellow "brown"
        if base == "yellow":
            base = "brown"
        if base in ANSI_NAMES:
            return self.ansi[ANSI_NAMES.index(base) + (8 if bright else 0)]
        if text.startswith("#"):
            text = text[1:]
        if len(text) >= 6:
            try:
                int(text[:6], 16)
            except ValueError:
                return default
            return f"#{text[:6]}"
        try:
            return self._indexed(int(text))
        except ValueError:
            return default

    def _indexed(self, n: int) -> str:
        if n < 16:
            return self.ansi[n]
        elif n < 232:
            # 6x6x6 colour cube
            idx = n - 16
            r = (idx // 36) * 51
            g = ((idx // 6) % 6) * 51
            b = (idx % 6) * 51
            return f"#{r:02x}{g:02x}{b:02x}"
        else:
            gray = (n - 232) * 10 + 8
            return f"#{gray:02x}{gray:02x}{gray:02x}"


DARK = Theme(
    name="dark",
    background="#0d1117",
    foreground="#e6edf3",
    cursor="#e6edf3",
    selection="#264f78",
    ansi=(
        "#484f58", "#ff7b72", "#7ee787", "#e3b341",
        "#79c0ff", "#d2a8ff", "#56d4dd", "#e6edf3",
        "#6e7681", "#ffa198", "#aff5b4", "#f8e3a1",
        "#a5d6ff", "#edc4ff", "#a5f3fc", "#ffffff",
    ),
)

LIGHT = Theme(
    name="light",
    background="#ffffff",
    foreground="#1f2328",
    cursor="#1f2328",
    selection="#b6d4f7",
    ansi=(
        "#24292f", "#cf222e", "#116329", "#4d2d00",
        "#0969da", "#8250df", "#1b7c83", "#6e7781",
        "#57606a", "#a40e26", "#1a7f37", "#633c01",
        "#218bff", "#a475f9", "#3192aa", "#8c959f",
    ),
)


def theme_for(scheme: ColorScheme) -> Theme:
    return LIGHT if scheme == "light" else DARK


@dataclass(frozen=True)
class FontMetrics:
    """Size of one character cell, in pixels."""

    family: str
    size: int
    cell_width: float
    cell_height: float

    @classmethod
    def estimate(cls, family: str, size: int) -> "FontMetrics":
        """Typical monospace proportions, for when no toolkit can measure the font."""
        return cls(family=family, size=size, cell_width=size * 0.6, cell_height=size * 1.2)

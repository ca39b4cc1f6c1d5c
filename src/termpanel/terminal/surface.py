"""
Rendering surface for one terminal session.

Uses pyte for terminal emulation, which handles:
- Cursor movement and positioning
- Alternate screen buffer
- Colors (256 + true color)
- All standard escape sequences

The surface owns the character grid and its scrollback. Drawing it on screen
is the job of a view (see ``widget.py``); the surface only knows pixels through
:meth:`fit`.
"""
from __future__ import annotations

import math
import re
from typing import Callable, List, Optional, Tuple, Union

import pyte

from ..errors import SurfaceDisposedError
from ..events import Unlisten
from ..theme import FontMetrics, Theme

Geometry = Tuple[int, int]  # (rows, cols)
Link = Tuple[int, int, int, str]  # (row, start col, end col, url)
InputHandler = Callable[[bytes], None]

URL_RE = re.compile(r"(?:https?|ftp)://[^\s'\"<>()\[\]{}]+")
# Sentence punctuation right after a URL is not part of it
TRAILING_PUNCT = ".,;:!?"


def find_links(text: str) -> List[Tuple[int, int, str]]:
    """URLs in one line of text as (start, end, url), end exclusive."""
    links = []
    for match in URL_RE.finditer(text):
        url = match.group(0).rstrip(TRAILING_PUNCT)
        if not url.endswith("://"):
            links.append((match.start(), match.start() + len(url), url))
    return links


class RenderSurface:
    """pyte screen + byte stream, with focus, keystroke fan-out and fitting."""

    def __init__(
        self,
        theme: Theme,
        font: FontMetrics,
        *,
        rows: int = 24,
        cols: int = 80,
        scrollback: int = 10000,
        padding: int = 8,
        min_rows: int = 1,
        min_cols: int = 2,
    ):
        self.theme = theme
        self.font = font
        self.padding = padding
        self.min_rows = min_rows
        self.min_cols = min_cols

        self.screen = pyte.HistoryScreen(cols, rows, history=scrollback, ratio=0.5)
        self.stream = pyte.ByteStream(self.screen)

        self._input_handlers: List[InputHandler] = []
        self._focused = False
        self._disposed = False
        # Set on every change a view would need to redraw for
        self.dirty = True

    @property
    def rows(self) -> int:
        return self.screen.lines

    @property
    def cols(self) -> int:
        return self.screen.columns

    @property
    def focused(self) -> bool:
        return self._focused

    @property
    def disposed(self) -> bool:
        return self._disposed

    def write(self, data: Union[bytes, str]) -> None:
        """Feed raw terminal output into the emulator."""
        if self._disposed:
            raise SurfaceDisposedError("write into a disposed surface")
        if isinstance(data, str):
            data = data.encode("utf-8")
        self.stream.feed(data)
        self.dirty = True

    def proposed_geometry(self, width: int, height: int) -> Optional[Geometry]:
        """Rows/cols that fit ``width`` x ``height`` pixels, or None if nothing is laid out."""
        avail_w = width - self.padding
        avail_h = height - self.padding
        if avail_w <= 0 or avail_h <= 0:
            return None
        cols = max(self.min_cols, math.floor(avail_w / self.font.cell_width))
        rows = max(self.min_rows, math.floor(avail_h / self.font.cell_height))
        return rows, cols

    def resize(self, rows: int, cols: int) -> None:
        if self._disposed:
            return
        if rows != self.screen.lines or cols != self.screen.columns:
            self.screen.resize(rows, cols)
            self.dirty = True

    def fit(self, width: int, height: int) -> Optional[Geometry]:
        """Resize the grid to the given pixel box. Returns the new geometry, or None."""
        geometry = self.proposed_geometry(width, height)
        if geometry is None or self._disposed:
            return None
        self.resize(*geometry)
        return geometry

    def on_input(self, handler: InputHandler) -> Unlisten:
        """Subscribe to keystrokes/pastes typed into this surface."""
        self._input_handlers.append(handler)

        def unlisten() -> None:
            if handler in self._input_handlers:
                self._input_handlers.remove(handler)

        return unlisten

    def input(self, data: Union[bytes, str]) -> None:
        """Called by the view for every keystroke or paste."""
        if self._disposed:
            return
        if isinstance(data, str):
            data = data.encode("utf-8")
        for handler in list(self._input_handlers):
            handler(data)

    def focus(self) -> None:
        self._focused = True
        self.dirty = True

    def blur(self) -> None:
        self._focused = False
        self.dirty = True

    def set_theme(self, theme: Theme) -> None:
        self.theme = theme
        self.dirty = True

    def scroll(self, pages: int) -> None:
        """Move the viewport through scrollback; negative is up."""
        for _ in range(abs(pages)):
            if pages < 0:
                self.screen.prev_page()
            else:
                self.screen.next_page()
        self.dirty = True

    def history_lines(self) -> List[str]:
        cols = self.screen.columns
        return [
            "".join(line[x].data for x in range(cols)).rstrip()
            for line in self.screen.history.top
        ]

    def lines(self) -> List[str]:
        """Scrollback followed by the visible screen, trailing blanks stripped."""
        return self.history_lines() + [row.rstrip() for row in self.screen.display]

    def text(self) -> str:
        return "\n".join(self.lines()).rstrip("\n")

    def links(self) -> List[Link]:
        """Clickable URLs on the visible screen, in cell columns."""
        screen = self.screen
        found = []
        for y in range(screen.lines):
            line = screen.buffer[y]
            # One character per cell, wide-character stubs included
            text = "".join(line[x].data or " " for x in range(screen.columns))
            for start, end, url in find_links(text):
                found.append((y, start, end, url))
        return found

    def dispose(self) -> None:
        self._input_handlers.clear()
        self._focused = False
        self._disposed = True


class SurfaceFactory:
    """Builds surfaces pre-configured with the current theme and font metrics."""

    def __init__(self, theme: Theme, font: FontMetrics, *, scrollback: int = 10000,
                 padding: int = 8, min_rows: int = 1, min_cols: int = 2):
        self.theme = theme
        self.font = font
        self.scrollback = scrollback
        self.padding = padding
        self.min_rows = min_rows
        self.min_cols = min_cols

    def __call__(self) -> RenderSurface:
        return RenderSurface(
            self.theme,
            self.font,
            scrollback=self.scrollback,
            padding=self.padding,
            min_rows=self.min_rows,
            min_cols=self.min_cols,
        )

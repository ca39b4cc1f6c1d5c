"""
Tkinter view of one terminal session.

Draws a :class:`RenderSurface` (pyte screen) into a ``tk.Text`` with colour
tags and turns key presses into bytes on the surface's input channel.
"""
from __future__ import annotations

import logging
import tkinter as tk
import webbrowser
from tkinter import font as tkfont
from typing import Optional, Tuple

from ..theme import FontMetrics
from .surface import RenderSurface

logger = logging.getLogger(__name__)

RENDER_INTERVAL_MS = 33  # ~30 FPS
LINK_TAG = "link"

KEY_SEQUENCES = {
    "Return": b"\r",
    "BackSpace": b"\x7f",
    "Tab": b"\t",
    "Escape": b"\x1b",
    "Delete": b"\x1b[3~",
    "Up": b"\x1b[A",
    "Down": b"\x1b[B",
    "Right": b"\x1b[C",
    "Left": b"\x1b[D",
    "Home": b"\x1b[H",
    "End": b"\x1b[F",
    "Prior": b"\x1b[5~",
    "Next": b"\x1b[6~",
}


def measure_font(root: tk.Misc, family: str, size: int) -> FontMetrics:
    """Cell size of ``family`` at ``size`` as Tk will draw it."""
    f = tkfont.Font(root=root, family=family, size=size)
    return FontMetrics(
        family=family,
        size=size,
        cell_width=f.measure("M"),
        cell_height=f.metrics("linespace"),
    )


class TerminalView(tk.Frame):
    """ViewHandle backed by a Tk frame living inside the panel's container."""

    def __init__(self, container: tk.Misc, session_id: str, surface: RenderSurface):
        super().__init__(container, bg=surface.theme.background)
        self.session_id = session_id
        self.surface = surface
        self._attached = False
        self._visible = False
        self._render_job: Optional[str] = None
        self._color_tags: set[str] = set()

        self._build_ui()
        self._setup_bindings()

    # ── ViewHandle ───────────────────────────────────────────────

    @property
    def attached(self) -> bool:
        return self._attached

    @property
    def visible(self) -> bool:
        return self._visible

    def attach(self) -> None:
        self._attached = True
        self._render_loop()

    def detach(self) -> None:
        self._attached = False
        self._visible = False
        if self._render_job is not None:
            self.after_cancel(self._render_job)
            self._render_job = None
        self.destroy()

    def set_visible(self, visible: bool) -> None:
        visible = visible and self._attached
        if visible == self._visible:
            return
        self._visible = visible
        if visible:
            self.pack(fill="both", expand=True)
            self.text.focus_set()
        else:
            self.pack_forget()

    def measure(self) -> Tuple[int, int]:
        if not (self._attached and self._visible):
            return 0, 0
        self.update_idletasks()
        return self.text.winfo_width(), self.text.winfo_height()

    # ── UI ───────────────────────────────────────────────────────

    def _build_ui(self) -> None:
        theme = self.surface.theme
        font = self.surface.font
        self.grid_rowconfigure(0, weight=1)
        self.grid_columnconfigure(0, weight=1)

        self.text = tk.Text(
            self,
            bg=theme.background,
            fg=theme.foreground,
            font=(font.family, font.size),
            insertbackground=theme.cursor,
            selectbackground=theme.selection,
            wrap="none",
            undo=False,
            padx=self.surface.padding // 2,
            pady=self.surface.padding // 2,
            relief="flat",
            borderwidth=0,
            highlightthickness=0,
            cursor="xterm",
        )
        self.text.grid(row=0, column=0, sticky="nsew")
        self.text.tag_configure(LINK_TAG, underline=True)

    def _setup_bindings(self) -> None:
        self.text.bind("<Key>", self._on_key)
        self.text.bind("<Control-Shift-V>", self._on_paste)
        self.text.bind("<Shift-Insert>", self._on_paste)
        self.text.bind("<Control-Shift-C>", self._on_copy)
        self.text.bind("<MouseWheel>", self._on_wheel)
        self.text.bind("<Button-4>", lambda e: self._scroll(-1))
        self.text.bind("<Button-5>", lambda e: self._scroll(1))
        self.text.tag_bind(LINK_TAG, "<Button-1>", self._on_link_click)
        self.text.tag_bind(LINK_TAG, "<Enter>", lambda e: self.text.configure(cursor="hand2"))
        self.text.tag_bind(LINK_TAG, "<Leave>", lambda e: self.text.configure(cursor="xterm"))

    def _render_loop(self) -> None:
        if not self._attached:
            return
        if self._visible and self.surface.dirty and not self.surface.disposed:
            self._render_screen()
        self._render_job = self.after(RENDER_INTERVAL_MS, self._render_loop)

    def _render_screen(self) -> None:
        """Render pyte screen to text widget with colors."""
        surface = self.surface
        screen = surface.screen
        surface.dirty = False

        self.text.configure(
            bg=surface.theme.background,
            fg=surface.theme.foreground,
            insertbackground=surface.theme.cursor,
        )
        self.text.delete("1.0", "end")

        for y in range(screen.lines):
            line = screen.buffer[y]
            x = 0
            while x < screen.columns:
                char = line[x]
                segment = char.data or " "
                tag = self._tag_for(char)
                x += 1
                # Consecutive chars with the same style form one segment
                while x < screen.columns:
                    next_char = line[x]
                    if self._tag_for(next_char) != tag:
                        break
                    segment += next_char.data or " "
                    x += 1
                self.text.insert("end", segment, tag)
            if y < screen.lines - 1:
                self.text.insert("end", "\n")

        for row, start, end, _url in surface.links():
            self.text.tag_add(LINK_TAG, f"{row + 1}.{start}", f"{row + 1}.{end}")

        try:
            self.text.mark_set("insert", f"{screen.cursor.y + 1}.{screen.cursor.x}")
        except tk.TclError:
            pass
        self.text.see("insert")

    def _tag_for(self, char) -> str:
        theme = self.surface.theme
        fg = theme.color(char.fg, theme.foreground)
        bg = theme.color(char.bg)
        if char.reverse:
            fg, bg = (bg or theme.background), fg

        parts = [f"c{fg[1:]}"]
        if bg:
            parts.append(f"b{bg[1:]}")
        if char.bold:
            parts.append("B")
        if char.italics:
            parts.append("I")
        if char.underscore:
            parts.append("U")
        tag_name = "_".join(parts)

        if tag_name not in self._color_tags:
            font = self.surface.font
            config = {"foreground": fg}
            if bg and bg != theme.background:
                config["background"] = bg
            weight = " ".join(s for s, on in (("bold", char.bold), ("italic", char.italics)) if on)
            if weight:
                config["font"] = (font.family, font.size, weight)
            if char.underscore:
                config["underline"] = True
            self.text.tag_configure(tag_name, **config)
            self._color_tags.add(tag_name)
        return tag_name

    # ── Input ────────────────────────────────────────────────────

    def _on_key(self, event) -> str:
        data = KEY_SEQUENCES.get(event.keysym)
        if data is None and event.char:
            # Control combinations arrive as their control character already
            data = event.char.encode("utf-8")
        if data:
            self.surface.input(data)
        return "break"

    def _on_paste(self, event) -> str:
        try:
            text = self.clipboard_get()
        except tk.TclError:
            return "break"
        self.surface.input(text)
        return "break"

    def _on_copy(self, event) -> str:
        try:
            selection = self.text.get("sel.first", "sel.last")
        except tk.TclError:
            return "break"
        self.clipboard_clear()
        self.clipboard_append(selection)
        return "break"

    def _on_link_click(self, event) -> str:
        index = self.text.index(f"@{event.x},{event.y}")
        span = self.text.tag_prevrange(LINK_TAG, f"{index}+1c")
        if span:
            url = self.text.get(*span)
            logger.info(f"[TERMINAL] opening link | id={self.session_id} url={url}")
            webbrowser.open(url)
        return "break"

    def _on_wheel(self, event) -> str:
        self._scroll(-1 if event.delta > 0 else 1)
        return "break"

    def _scroll(self, pages: int) -> str:
        self.surface.scroll(pages)
        return "break"

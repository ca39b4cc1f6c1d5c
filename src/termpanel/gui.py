"""
Tkinter front end: a window with a toggleable, resizable terminal panel.
"""
from __future__ import annotations

import asyncio
import logging
import tkinter as tk
from tkinter import ttk
from typing import Callable, List, Set

from .config import PanelConfig
from .panel import PanelController, TabView, create_panel
from .settings import PanelSettings, update_setting
from .terminal.spawner import PtySpawner
from .terminal.surface import RenderSurface
from .terminal.widget import TerminalView, measure_font
from .theme import theme_for

logger = logging.getLogger(__name__)

PUMP_INTERVAL = 0.01


class TkFrameScheduler:
    """Next-frame deferral on the Tk event queue."""

    def __init__(self, root: tk.Misc, delay_ms: int = 16):
        self._root = root
        self.delay_ms = delay_ms

    def request_frame(self, callback: Callable[[], None]) -> None:
        self._root.after_idle(lambda: self._root.after(self.delay_ms, callback))


class TerminalPanelApp:
    def __init__(self, root: tk.Tk, config: PanelConfig, settings: PanelSettings, cwd: str = ""):
        self.root = root
        self.config = config
        self.settings = settings
        self.cwd = cwd
        self.running = True
        self._tasks: Set[asyncio.Task] = set()

        theme = theme_for(settings.color_scheme)
        self.bg_color = theme.background
        self.fg_color = theme.foreground
        self.tab_bg = "#161b22" if settings.color_scheme == "dark" else "#f6f8fa"

        self.root.title("termpanel")
        self.root.geometry("960x640")
        self.root.configure(bg=self.bg_color)

        self._create_widgets()

        self.spawner = PtySpawner(shell=config.shell, login=config.login_shell)
        self.panel: PanelController = create_panel(
            self.spawner,
            config,
            self._make_view,
            scheme=settings.color_scheme,
            font=measure_font(root, config.font_family, config.font_size),
            scheduler=TkFrameScheduler(root, config.frame_delay_ms),
            height=settings.panel_height,
            cwd_provider=lambda: self.cwd,
            persist_height=lambda h: update_setting("panel_height", h),
            on_visibility=self._on_visibility,
            on_height=self._on_height,
        )
        self.panel.tabs.on_change = self._render_tabs

        self._setup_bindings()

    # ── Layout ───────────────────────────────────────────────────

    def _create_widgets(self) -> None:
        toolbar = tk.Frame(self.root, bg=self.tab_bg, height=32)
        toolbar.pack(fill="x", side="top")
        tk.Button(
            toolbar,
            text="Terminal",
            relief="flat",
            bg=self.tab_bg,
            fg=self.fg_color,
            command=lambda: self._run(self.panel.toggle()),
        ).pack(side="left", padx=6, pady=3)
        tk.Button(
            toolbar,
            text="Light/Dark",
            relief="flat",
            bg=self.tab_bg,
            fg=self.fg_color,
            command=self._toggle_scheme,
        ).pack(side="left", padx=6, pady=3)

        self.content = tk.Frame(self.root, bg=self.bg_color)
        self.content.pack(fill="both", expand=True)

        self.resize_handle = tk.Frame(self.root, height=4, bg=self.tab_bg, cursor="sb_v_double_arrow")

        self.panel_frame = tk.Frame(self.root, bg=self.bg_color)
        self.panel_frame.pack_propagate(False)

        tab_bar = tk.Frame(self.panel_frame, bg=self.tab_bg, height=28)
        tab_bar.pack(fill="x", side="top")
        self.tab_strip = tk.Frame(tab_bar, bg=self.tab_bg)
        self.tab_strip.pack(side="left", fill="x")
        tk.Button(
            tab_bar,
            text="+",
            relief="flat",
            bg=self.tab_bg,
            fg=self.fg_color,
            command=lambda: self._run(self.panel.add_session()),
        ).pack(side="left", padx=4)

        self.containers = tk.Frame(self.panel_frame, bg=self.bg_color)
        self.containers.pack(fill="both", expand=True)

    def _setup_bindings(self) -> None:
        self.resize_handle.bind("<ButtonPress-1>", lambda e: self.panel.begin_drag(e.y_root))
        self.resize_handle.bind("<B1-Motion>", lambda e: self.panel.drag_to(e.y_root))
        self.resize_handle.bind("<ButtonRelease-1>", lambda e: self.panel.end_drag())
        self.content.bind("<Configure>", lambda e: self.panel.layout_changed())
        self.root.bind("<Control-grave>", lambda e: self._run(self.panel.toggle()))
        self.root.protocol("WM_DELETE_WINDOW", self.quit)

    def _make_view(self, session_id: str, surface: RenderSurface) -> TerminalView:
        return TerminalView(self.containers, session_id, surface)

    def _on_visibility(self, visible: bool) -> None:
        if visible:
            self.panel_frame.configure(height=self.panel.height)
            self.panel_frame.pack(fill="x", side="bottom")
            self.resize_handle.pack(fill="x", side="bottom")
        else:
            self.panel_frame.pack_forget()
            self.resize_handle.pack_forget()

    def _on_height(self, height: int) -> None:
        self.panel_frame.configure(height=height)

    def _toggle_scheme(self) -> None:
        scheme = "light" if self.settings.color_scheme == "dark" else "dark"
        self.settings = update_setting("color_scheme", scheme)
        self.panel.apply_theme(scheme)

    # ── Tabs ─────────────────────────────────────────────────────

    def _render_tabs(self, tabs: List[TabView]) -> None:
        for child in self.tab_strip.winfo_children():
            child.destroy()
        for tab in tabs:
            bg = self.bg_color if tab.active else self.tab_bg
            frame = tk.Frame(self.tab_strip, bg=bg)
            frame.pack(side="left", padx=(0, 1))
            if tab.editing:
                self._rename_entry(frame, tab)
            else:
                label = tk.Label(
                    frame,
                    text=tab.label + (" (exited)" if tab.exited else ""),
                    bg=bg,
                    fg="#7d8590" if tab.exited else self.fg_color,
                    padx=8,
                )
                label.pack(side="left")
                label.bind("<Button-1>", lambda e, sid=tab.session_id: self.panel.tabs.click(sid))
                label.bind("<Double-Button-1>", lambda e, sid=tab.session_id: self.panel.tabs.begin_rename(sid))
            tk.Button(
                frame,
                text="×",
                relief="flat",
                bg=bg,
                fg=self.fg_color,
                command=lambda sid=tab.session_id: self.panel.close_session(sid),
            ).pack(side="left")

    def _rename_entry(self, parent: tk.Misc, tab: TabView) -> None:
        tabs = self.panel.tabs
        entry = ttk.Entry(parent, width=max(8, len(tab.label) + 2))
        entry.insert(0, tab.label)
        entry.pack(side="left")
        entry.select_range(0, "end")
        entry.focus_set()

        def sync(_event=None) -> None:
            # Keep the draft without re-rendering, which would rebuild this entry
            if tabs.editing is not None and tabs.editing.session_id == tab.session_id:
                tabs.editing.text = entry.get()

        def commit(_event=None) -> str:
            sync()
            tabs.key_rename("Return")
            return "break"

        def cancel(_event=None) -> str:
            tabs.key_rename("Escape")
            return "break"

        def blur(_event=None) -> None:
            if tabs.editing is not None and tabs.editing.session_id == tab.session_id:
                sync()
                tabs.blur_rename()

        entry.bind("<KeyRelease>", sync)
        entry.bind("<Return>", commit)
        entry.bind("<Escape>", cancel)
        entry.bind("<FocusOut>", blur)

    # ── Lifecycle ────────────────────────────────────────────────

    def _run(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def quit(self) -> None:
        self.running = False

    async def mainloop(self) -> None:
        await self.panel.open()
        try:
            while self.running:
                self.root.update()
                await asyncio.sleep(PUMP_INTERVAL)
        except tk.TclError as e:
            logger.info(f"[PANEL] window gone | error={e}")
        finally:
            await self.panel.shutdown()
            self.spawner.shutdown()
            try:
                self.root.destroy()
            except tk.TclError:
                pass


def run_gui(config: PanelConfig, settings: PanelSettings, cwd: str = "") -> None:
    async def main() -> None:
        root = tk.Tk()
        app = TerminalPanelApp(root, config, settings, cwd)
        await app.mainloop()

    asyncio.run(main())

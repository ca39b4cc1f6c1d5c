"""
PanelController: show/hide and sizing of the whole terminal panel.

Hiding the panel never destroys anything: sessions, scrollback and processes
all survive hide/reveal cycles. Sessions go away only when their tab is
closed or the application exits.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional, Tuple

from ..config import PanelConfig
from ..errors import SpawnFailure
from ..terminal.spawner import SessionBackend
from ..terminal.surface import SurfaceFactory
from ..theme import ColorScheme, FontMetrics, theme_for
from .registry import RemoveResult, Session, SessionRegistry, ViewFactory
from .resize import ResizeCoordinator
from .router import OutputRouter
from .scheduler import AsyncioFrameScheduler, FrameScheduler
from .tabs import TabController
from .transport import BestEffort, FailureHook

logger = logging.getLogger(__name__)


class PanelController:
    def __init__(
        self,
        registry: SessionRegistry,
        tabs: TabController,
        resize: ResizeCoordinator,
        config: PanelConfig,
        surface_factory: SurfaceFactory,
        *,
        height: Optional[int] = None,
        cwd_provider: Callable[[], str] = lambda: "",
        persist_height: Optional[Callable[[int], None]] = None,
        on_visibility: Optional[Callable[[bool], None]] = None,
        on_height: Optional[Callable[[int], None]] = None,
    ):
        self.registry = registry
        self.tabs = tabs
        self.resize = resize
        self.config = config
        self.surface_factory = surface_factory
        self.cwd_provider = cwd_provider
        self.persist_height = persist_height
        self.on_visibility = on_visibility
        self.on_height = on_height

        self.is_open = False
        self.height = config.clamp_height(config.default_height if height is None else height)
        self._drag: Optional[Tuple[int, int]] = None  # (start_y, start_height)
        self._open_lock = asyncio.Lock()

        tabs.on_empty = self._on_registry_empty

    # ── Visibility ───────────────────────────────────────────────

    async def open(self) -> bool:
        """Show the panel. Returns False if it had to create a session and could not."""
        async with self._open_lock:
            if self.is_open:
                return True
            if len(self.registry) == 0:
                try:
                    await self.tabs.add(self.cwd_provider())
                except SpawnFailure as e:
                    logger.warning(f"[PANEL] open aborted, no session | reason={e.reason}")
                    return False
                self._set_visible(True)
            else:
                self._set_visible(True)
                # Hidden views have stale geometry: fit before anything else
                self.tabs.focus_active()
            logger.info(f"[PANEL] opened | sessions={len(self.registry)} height={self.height}")
            return True

    def close(self) -> None:
        """Hide the panel. Sessions keep running."""
        if not self.is_open:
            return
        active = self.registry.active
        if active is not None:
            active.surface.blur()
        self._set_visible(False)
        logger.info(f"[PANEL] hidden | sessions={len(self.registry)}")

    async def toggle(self) -> bool:
        if self.is_open:
            self.close()
            return False
        return await self.open()

    def _set_visible(self, visible: bool) -> None:
        self.is_open = visible
        self.resize.visible = visible
        active_id = self.registry.active_id
        for session in self.registry.sessions():
            session.view.set_visible(visible and session.id == active_id)
        if self.on_visibility is not None:
            self.on_visibility(visible)

    def _on_registry_empty(self) -> None:
        # Closing the last tab closes the panel
        self._set_visible(False)
        logger.info("[PANEL] last session closed, panel hidden")

    # ── Sessions ─────────────────────────────────────────────────

    async def add_session(self, cwd: Optional[str] = None) -> Optional[Session]:
        """The "+" button: start another session and make it active."""
        try:
            return await self.tabs.add(self.cwd_provider() if cwd is None else cwd)
        except SpawnFailure as e:
            logger.warning(f"[PANEL] new session failed | reason={e.reason}")
            return None

    def close_session(self, session_id: str) -> RemoveResult:
        return self.tabs.close(session_id)

    # ── Height ───────────────────────────────────────────────────

    def begin_drag(self, pointer_y: int) -> None:
        self._drag = (pointer_y, self.height)

    def drag_to(self, pointer_y: int) -> int:
        """Live preview: dragging up grows the panel."""
        if self._drag is None:
            return self.height
        start_y, start_height = self._drag
        self._apply_height(start_height + (start_y - pointer_y))
        self.resize.drag_step()
        return self.height

    def end_drag(self) -> None:
        if self._drag is None:
            return
        self._drag = None
        self._persist()
        self.resize.drag_release()

    def set_height(self, height: int) -> int:
        self._apply_height(height)
        self._persist()
        self.resize.layout_changed()
        return self.height

    def _apply_height(self, height: int) -> None:
        self.height = self.config.clamp_height(height)
        if self.on_height is not None:
            self.on_height(self.height)

    def _persist(self) -> None:
        if self.persist_height is not None:
            self.persist_height(self.height)

    # ── Ambient ──────────────────────────────────────────────────

    def layout_changed(self) -> None:
        """The surrounding container changed size."""
        if self.is_open:
            self.resize.layout_changed()

    def apply_theme(self, scheme: ColorScheme) -> None:
        theme = theme_for(scheme)
        self.surface_factory.theme = theme
        for session in self.registry.sessions():
            session.surface.set_theme(theme)

    async def shutdown(self) -> int:
        """Application exit: close every remaining session exactly once."""
        closed = await self.registry.close_all()
        await self.registry.transport.drain()
        return closed


def create_panel(
    backend: SessionBackend,
    config: PanelConfig,
    view_factory: ViewFactory,
    *,
    scheme: ColorScheme = "dark",
    font: Optional[FontMetrics] = None,
    scheduler: Optional[FrameScheduler] = None,
    on_failure: Optional[FailureHook] = None,
    **panel_kwargs,
) -> PanelController:
    """Wire registry, router, resize coordinator and tabs into a panel."""
    surface_factory = SurfaceFactory(
        theme_for(scheme),
        font or FontMetrics.estimate(config.font_family, config.font_size),
        scrollback=config.scrollback,
        padding=config.padding,
        min_rows=config.min_rows,
        min_cols=config.min_cols,
    )
    router = OutputRouter(backend)
    registry = SessionRegistry(
        backend,
        surface_factory,
        view_factory,
        router,
        transport=BestEffort(on_failure),
    )
    resize = ResizeCoordinator(
        registry,
        backend,
        scheduler or AsyncioFrameScheduler(config.frame_delay_ms / 1000),
    )
    tabs = TabController(registry, resize)
    router.on_exit = lambda _session: tabs.render()
    return PanelController(registry, tabs, resize, config, surface_factory, **panel_kwargs)

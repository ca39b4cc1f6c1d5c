"""
ResizeCoordinator: keeps the backend's rows x cols in step with the rendered
size of the active session.

Only the active session is ever fitted. Hidden views report stale or zero
geometry, so nothing is fitted while the panel is hidden, and revealing the
panel or switching sessions always fits again before focus moves.
"""
from __future__ import annotations

import logging
from typing import Optional, Tuple

from ..terminal.spawner import SessionBackend
from .registry import Session, SessionRegistry
from .scheduler import FrameScheduler

logger = logging.getLogger(__name__)


class ResizeCoordinator:
    def __init__(self, registry: SessionRegistry, backend: SessionBackend, scheduler: FrameScheduler):
        self._registry = registry
        self._backend = backend
        self._scheduler = scheduler
        # Tracks the panel; hidden views have no trustworthy size
        self.visible = False

    def refit(self, session_id: Optional[str] = None, *, notify: bool = True) -> Optional[Tuple[int, int]]:
        """Fit the active session to its view; optionally tell the backend.

        ``session_id`` must be the active session when given; background
        sessions are left alone. Returns the fitted geometry or None.
        """
        session = self._registry.active
        if session is None or (session_id is not None and session.id != session_id):
            return None
        if not self.visible:
            return None

        width, height = session.view.measure()
        geometry = session.surface.fit(width, height)
        if geometry is None:
            logger.debug(f"[PANEL] fit skipped, view not laid out | id={session.id}")
            return None
        if notify:
            self._notify(session, geometry)
        return geometry

    def schedule_initial_fit(self, session: Session) -> None:
        """First fit of a new session, one frame after its view was attached."""
        def fit() -> None:
            if session.id not in self._registry or not session.view.attached:
                return
            self.refit(session.id)

        self._scheduler.request_frame(fit)

    def drag_step(self) -> None:
        # Local reflow only; the backend hears about the final size on release
        self.refit(notify=False)

    def drag_release(self) -> None:
        self.refit(notify=True)

    def layout_changed(self) -> None:
        self.refit(notify=True)

    def reveal(self) -> None:
        self.refit(notify=True)

    def _notify(self, session: Session, geometry: Tuple[int, int]) -> None:
        rows, cols = geometry
        self._registry.record_geometry(session.id, geometry)
        self._registry.transport.submit(
            "resize", session.id, self._backend.resize(session.id, rows, cols)
        )

"""
OutputRouter: per-session delivery of backend output into its surface.

Chunks are written in exactly the order the backend emitted them; nothing is
reordered, coalesced or waited on. Backpressure is the surface's problem.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, List, Optional

from ..events import Unlisten, decode_chunk
from ..terminal.spawner import SessionBackend

if TYPE_CHECKING:
    from .registry import Session

logger = logging.getLogger(__name__)

EXIT_MARKER = b"\r\n\x1b[90m[Process exited]\x1b[0m\r\n"


class OutputRouter:
    def __init__(self, backend: SessionBackend, on_exit: Optional[Callable[["Session"], None]] = None):
        self._backend = backend
        # Lets the tab strip show that a session's process is gone
        self.on_exit = on_exit

    def attach(self, session: "Session", mark_exited: Callable[[str], bool]) -> List[Unlisten]:
        """Subscribe ``session`` to its output and exit events. Returns the unsubscribers.

        ``mark_exited`` records the exit with the session's owner and returns
        False when it was already recorded.
        """
        return [
            self._backend.subscribe_output(session.id, lambda payload: self._deliver(session, payload)),
            self._backend.subscribe_exit(
                session.id, lambda _payload: self._exited(session, mark_exited)
            ),
        ]

    def _deliver(self, session: "Session", payload) -> None:
        try:
            data = decode_chunk(payload)
        except ValueError as e:
            logger.warning(f"[SESSION] dropped output chunk | id={session.id} error={e}")
            return
        session.surface.write(data)

    def _exited(self, session: "Session", mark_exited: Callable[[str], bool]) -> None:
        if not mark_exited(session.id):
            return
        # Scrollback stays inspectable until the user closes the tab
        session.surface.write(EXIT_MARKER)
        logger.info(f"[SESSION] process exited | id={session.id}")
        if self.on_exit is not None:
            self.on_exit(session)

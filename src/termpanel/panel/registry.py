"""
SessionRegistry: the authoritative, insertion-ordered set of live sessions.

Only the registry creates or destroys Session records. Everything else asks
it for operations (create, remove, rename, set_active) instead of touching
session state directly.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from ..errors import SpawnFailure
from ..events import Unlisten
from ..terminal.spawner import SessionBackend
from ..terminal.surface import RenderSurface
from ..terminal.view import ViewHandle
from .router import OutputRouter
from .transport import BestEffort

logger = logging.getLogger(__name__)

ViewFactory = Callable[[str, RenderSurface], ViewHandle]


@dataclass(eq=False)
class Session:
    id: str
    display_name: str
    surface: RenderSurface
    view: ViewHandle
    created_seq: int
    exited: bool = False
    # Last (rows, cols) sent to the backend
    geometry: Optional[Tuple[int, int]] = None
    _unlisteners: List[Unlisten] = field(default_factory=list, repr=False)


@dataclass(frozen=True)
class RemoveResult:
    removed: bool
    registry_now_empty: bool
    was_active: bool = False


class SessionRegistry:
    def __init__(
        self,
        backend: SessionBackend,
        surface_factory: Callable[[], RenderSurface],
        view_factory: ViewFactory,
        router: OutputRouter,
        transport: Optional[BestEffort] = None,
    ):
        self._backend = backend
        self._surface_factory = surface_factory
        self._view_factory = view_factory
        self._router = router
        self.transport = transport or BestEffort()

        self._sessions: Dict[str, Session] = {}
        self._active_id: Optional[str] = None
        # Never reset: default names stay unique across churn
        self._counter = 0
        self._torn_down = False

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __iter__(self) -> Iterator[Session]:
        return iter(list(self._sessions.values()))

    def sessions(self) -> List[Session]:
        """Live sessions in creation order."""
        return sorted(self._sessions.values(), key=lambda s: s.created_seq)

    def get(self, session_id: str) -> Optional[Session]:
        return self._sessions.get(session_id)

    @property
    def active_id(self) -> Optional[str]:
        return self._active_id

    @property
    def active(self) -> Optional[Session]:
        if self._active_id is None:
            return None
        return self._sessions.get(self._active_id)

    def set_active(self, session_id: str) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            raise KeyError(session_id)
        self._active_id = session_id
        return session

    def most_recent(self) -> Optional[Session]:
        """The live session with the greatest created_seq."""
        if not self._sessions:
            return None
        return max(self._sessions.values(), key=lambda s: s.created_seq)

    def rename(self, session_id: str, name: str) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            raise KeyError(session_id)
        name = name.strip()
        if not name:
            raise ValueError("display name must not be blank")
        session.display_name = name
        logger.info(f"[SESSION] renamed | id={session_id} name={name}")
        return session

    async def create(self, cwd: str = "") -> Session:
        """Spawn a process and register it as the active session.

        Raises:
            SpawnFailure: the backend did not start a process; nothing changed.
        """
        try:
            session_id = await self._backend.spawn(cwd)
        except SpawnFailure as e:
            logger.warning(f"[SESSION] create failed | cwd={cwd!r} reason={e.reason}")
            raise
        except Exception as e:
            logger.warning(f"[SESSION] create failed | cwd={cwd!r} error={e}")
            raise SpawnFailure(cwd, str(e)) from e

        if session_id in self._sessions:
            raise SpawnFailure(cwd, f"backend reused live session id {session_id}")

        seq = self._counter + 1
        surface: Optional[RenderSurface] = None
        view: Optional[ViewHandle] = None
        unlisteners: List[Unlisten] = []
        try:
            surface = self._surface_factory()
            view = self._view_factory(session_id, surface)
            session = Session(
                id=session_id,
                display_name=f"Terminal {seq}",
                surface=surface,
                view=view,
                created_seq=seq,
            )
            unlisteners.extend(self._router.attach(session, self.mark_exited))
            unlisteners.append(
                surface.on_input(lambda data, sid=session_id: self._forward_input(sid, data))
            )
            view.attach()
        except Exception as e:
            logger.warning(f"[SESSION] create failed after spawn | id={session_id} error={e}")
            for unlisten in unlisteners:
                unlisten()
            if surface is not None:
                surface.dispose()
            if view is not None:
                view.detach()
            # The process is already running; nothing else will ever close it
            self.transport.submit("close", session_id, self._backend.close(session_id))
            raise SpawnFailure(cwd, str(e) or type(e).__name__) from e

        self._counter = seq
        session._unlisteners.extend(unlisteners)
        self._sessions[session_id] = session
        self._active_id = session_id
        logger.info(f"[SESSION] created | id={session_id} name={session.display_name} cwd={cwd!r}")
        return session

    def mark_exited(self, session_id: str) -> bool:
        """Record that the session's process is gone. Returns False if already recorded."""
        session = self._sessions.get(session_id)
        if session is None or session.exited:
            return False
        session.exited = True
        return True

    def record_geometry(self, session_id: str, geometry: Tuple[int, int]) -> None:
        """Remember the (rows, cols) last sent to the backend."""
        session = self._sessions.get(session_id)
        if session is not None:
            session.geometry = geometry

    def remove(self, session_id: str) -> RemoveResult:
        session = self._sessions.get(session_id)
        if session is None:
            return RemoveResult(removed=False, registry_now_empty=not self._sessions)

        # Unsubscribe before dispose: a late output event must never reach a
        # disposed surface.
        for unlisten in session._unlisteners:
            unlisten()
        session._unlisteners.clear()
        session.surface.dispose()
        session.view.detach()
        del self._sessions[session_id]

        was_active = self._active_id == session_id
        if was_active:
            self._active_id = None

        self.transport.submit("close", session_id, self._backend.close(session_id))
        logger.info(f"[SESSION] removed | id={session_id} remaining={len(self._sessions)}")
        return RemoveResult(
            removed=True,
            registry_now_empty=not self._sessions,
            was_active=was_active,
        )

    async def close_all(self) -> int:
        """Teardown sweep: one best-effort close per remaining id.

        UI state is left alone; the window is going away. Returns the number
        of close calls issued.
        """
        if self._torn_down:
            return 0
        self._torn_down = True
        ids = list(self._sessions)
        results = await asyncio.gather(
            *(self.transport.run("close", sid, self._backend.close(sid)) for sid in ids)
        )
        logger.info(f"[SESSION] close_all | closed={sum(results)} failed={len(ids) - sum(results)}")
        return len(ids)

    def _forward_input(self, session_id: str, data: bytes) -> None:
        self.transport.submit("send_input", session_id, self._backend.send_input(session_id, data))

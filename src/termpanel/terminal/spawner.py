"""
Process-spawning and streaming service behind the terminal panel.

Each session is a login shell running under a PTY. A daemon reader thread per
session pushes output onto the asyncio loop with ``call_soon_threadsafe``, so
the loop sees every chunk of one session in the order the PTY produced it.
"""
from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Optional, Protocol, Tuple

from ..errors import SpawnFailure, TransportFailure
from ..events import EventBus, Handler, Unlisten, encode_chunk, exit_event, output_event
from ..processes import shell_command, terminal_env
from .pty_backend import PTYBackend, create_pty_backend

logger = logging.getLogger(__name__)

READ_CHUNK = 4096


class SessionBackend(Protocol):
    """What the panel needs from whoever runs the shells."""

    async def spawn(self, cwd: str) -> str: ...

    async def close(self, session_id: str) -> None: ...

    async def resize(self, session_id: str, rows: int, cols: int) -> None: ...

    async def send_input(self, session_id: str, data: bytes) -> None: ...

    def subscribe_output(self, session_id: str, handler: Handler) -> Unlisten: ...

    def subscribe_exit(self, session_id: str, handler: Handler) -> Unlisten: ...


@dataclass
class _PtySession:
    session_id: str
    pty: PTYBackend
    reader: Optional[threading.Thread] = None


class PtySpawner:
    """Runs one PTY-backed shell per session id (``term-1``, ``term-2``, ...)."""

    def __init__(
        self,
        bus: Optional[EventBus] = None,
        *,
        shell: Optional[str] = None,
        login: bool = True,
        initial_size: Tuple[int, int] = (24, 80),
        env: Optional[Dict[str, str]] = None,
        pty_factory: Callable[[], PTYBackend] = create_pty_backend,
    ):
        self.bus = bus or EventBus()
        self._cmd = shell_command(shell, login=login)
        self._initial_size = initial_size
        self._env = env
        self._pty_factory = pty_factory
        self._counter = 0
        self._sessions: Dict[str, _PtySession] = {}

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    async def spawn(self, cwd: str) -> str:
        loop = asyncio.get_running_loop()
        path = cwd or str(Path.home())
        if not Path(path).is_dir():
            raise SpawnFailure(cwd, "working directory does not exist")

        self._counter += 1
        session_id = f"term-{self._counter}"

        pty = self._pty_factory()
        try:
            pty.spawn(self._cmd, path, size=self._initial_size, env=terminal_env(self._env))
        except (OSError, ImportError) as e:
            pty.close()
            logger.warning(f"[TERMINAL] spawn failed | id={session_id} cwd={path} error={e}")
            raise SpawnFailure(cwd, str(e)) from e

        session = _PtySession(session_id, pty)
        self._sessions[session_id] = session
        session.reader = threading.Thread(
            target=self._read_loop,
            args=(session, loop),
            name=f"pty-reader-{session_id}",
            daemon=True,
        )
        session.reader.start()
        logger.info(f"[TERMINAL] spawned | id={session_id} cwd={path} pid={pty.pid}")
        return session_id

    async def close(self, session_id: str) -> None:
        session = self._sessions.pop(session_id, None)
        if session is None:
            # Already closed, or the process already went away
            return
        await asyncio.to_thread(session.pty.terminate)
        logger.info(f"[TERMINAL] closed | id={session_id}")

    async def resize(self, session_id: str, rows: int, cols: int) -> None:
        session = self._require("resize", session_id)
        try:
            session.pty.resize(rows, cols)
        except OSError as e:
            raise TransportFailure("resize", session_id, str(e)) from e
        logger.debug(f"[TERMINAL] resized | id={session_id} rows={rows} cols={cols}")

    async def send_input(self, session_id: str, data: bytes) -> None:
        session = self._require("send_input", session_id)
        try:
            session.pty.write(data)
        except OSError as e:
            raise TransportFailure("send_input", session_id, str(e)) from e

    def subscribe_output(self, session_id: str, handler: Handler) -> Unlisten:
        return self.bus.listen(output_event(session_id), handler)

    def subscribe_exit(self, session_id: str, handler: Handler) -> Unlisten:
        return self.bus.listen(exit_event(session_id), handler)

    def shutdown(self) -> None:
        """Terminate every PTY still running. Safe to call more than once."""
        for session_id in list(self._sessions):
            session = self._sessions.pop(session_id)
            try:
                session.pty.terminate()
            except OSError as e:
                logger.warning(f"[TERMINAL] shutdown terminate failed | id={session_id} error={e}")

    def _require(self, op: str, session_id: str) -> _PtySession:
        session = self._sessions.get(session_id)
        if session is None:
            raise TransportFailure(op, session_id, f"Terminal {session_id} not found")
        return session

    def _read_loop(self, session: _PtySession, loop: asyncio.AbstractEventLoop) -> None:
        """Background thread: read PTY output until EOF, then report the exit once."""
        pty = session.pty
        try:
            while True:
                data = pty.read(READ_CHUNK)
                if data is None:
                    break
                if data:
                    self._post(loop, output_event(session.session_id), encode_chunk(data))
                elif not pty.is_alive():
                    break
        except Exception as e:
            logger.warning(f"[TERMINAL] reader failed | id={session.session_id} error={e}")
        finally:
            pty.close()
            self._post(loop, exit_event(session.session_id), None)
            logger.debug(f"[TERMINAL] reader done | id={session.session_id}")

    def _post(self, loop: asyncio.AbstractEventLoop, event: str, payload) -> None:
        try:
            loop.call_soon_threadsafe(self.bus.emit, event, payload)
        except RuntimeError:
            # Loop already closed: the application is exiting
            pass

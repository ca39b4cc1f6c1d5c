"""
Fire-and-forget calls to the session backend.

close / resize / send_input never block the UI and are never rolled back or
retried. Their failures go to an injectable hook (logging by default) so a
caller can observe them without changing behaviour.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Set

from ..errors import TransportFailure

logger = logging.getLogger(__name__)

FailureHook = Callable[[TransportFailure], None]


def log_failure(failure: TransportFailure) -> None:
    logger.warning(
        f"[TERMINAL] {failure.op} failed | id={failure.session_id} reason={failure.reason}"
    )


class BestEffort:
    """Schedules backend calls as tasks and reports, but ignores, their failures."""

    def __init__(self, on_failure: Optional[FailureHook] = None):
        self.on_failure: FailureHook = on_failure or log_failure
        self._pending: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def submit(self, op: str, session_id: str, call: Awaitable[None]) -> asyncio.Task:
        """Start ``call`` without waiting for it. Must run inside the event loop."""
        task = asyncio.get_running_loop().create_task(self.run(op, session_id, call))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def run(self, op: str, session_id: str, call: Awaitable[None]) -> bool:
        """Await ``call``; returns False (after reporting) if it failed."""
        try:
            await call
        except TransportFailure as e:
            self._report(e)
            return False
        except Exception as e:
            self._report(TransportFailure(op, session_id, str(e) or type(e).__name__))
            return False
        return True

    async def drain(self) -> None:
        """Wait for every call submitted so far (and any they submit)."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    def _report(self, failure: TransportFailure) -> None:
        try:
            self.on_failure(failure)
        except Exception:
            logger.exception(f"[TERMINAL] failure hook raised | op={failure.op}")

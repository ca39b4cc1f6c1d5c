"""
"Next render frame" deferral.

A view measured before it has been attached and laid out reports zero (or
stale) dimensions, so the first fit of a new session waits one frame.
"""
from __future__ import annotations

import asyncio
from typing import Callable, Optional, Protocol

FrameCallback = Callable[[], None]


class FrameScheduler(Protocol):
    def request_frame(self, callback: FrameCallback) -> None: ...


class AsyncioFrameScheduler:
    """Runs the callback after ``delay`` seconds on the running loop."""

    def __init__(self, delay: float = 1 / 60, loop: Optional[asyncio.AbstractEventLoop] = None):
        self.delay = delay
        self._loop = loop

    def request_frame(self, callback: FrameCallback) -> None:
        loop = self._loop or asyncio.get_running_loop()
        loop.call_later(self.delay, callback)

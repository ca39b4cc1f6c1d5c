"""
In-process event channel between the session backend and the UI.

Events are named per session (``terminal-output-<id>``, ``terminal-exit-<id>``)
and dispatched synchronously, in the order they are emitted.
"""
from __future__ import annotations

import base64
import binascii
import logging
from typing import Any, Callable, Dict, List, Union

logger = logging.getLogger(__name__)

Handler = Callable[[Any], None]
Unlisten = Callable[[], None]


def encode_chunk(data: bytes) -> str:
    """Binary-safe payload for an output event."""
    return base64.b64encode(data).decode("ascii")


def decode_chunk(payload: Union[str, bytes]) -> bytes:
    """Inverse of :func:`encode_chunk`. Raises ValueError on a malformed payload."""
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, TypeError) as e:
        raise ValueError(f"malformed output chunk: {e}") from e


def output_event(session_id: str) -> str:
    return f"terminal-output-{session_id}"


def exit_event(session_id: str) -> str:
    return f"terminal-exit-{session_id}"


class EventBus:
    """Named event channel with listen/unlisten semantics."""

    def __init__(self):
        self._handlers: Dict[str, List[Handler]] = {}

    def listen(self, event: str, handler: Handler) -> Unlisten:
        """Register ``handler`` for ``event``. Returns a callable that removes it."""
        self._handlers.setdefault(event, []).append(handler)

        def unlisten() -> None:
            handlers = self._handlers.get(event)
            if not handlers:
                return
            try:
                handlers.remove(handler)
            except ValueError:
                return
            if not handlers:
                del self._handlers[event]

        return unlisten

    def emit(self, event: str, payload: Any = None) -> int:
        """Deliver ``payload`` to every listener of ``event``; returns how many ran."""
        # Copy: a handler may unlisten itself (or others) while we iterate.
        handlers = list(self._handlers.get(event, ()))
        for handler in handlers:
            try:
                handler(payload)
            except Exception:
                logger.exception(f"[EVENTS] handler failed | event={event}")
        return len(handlers)

    def listener_count(self, event: str) -> int:
        return len(self._handlers.get(event, ()))

"""
Error taxonomy for the terminal panel.

Nothing here is application-fatal: the worst outcome of any of these is a
single degraded session the user can close and recreate.
"""
from __future__ import annotations


class TermPanelError(Exception):
    """Base class for terminal panel errors."""


class SpawnFailure(TermPanelError):
    """The backend could not start a new session. No registry state changed."""

    def __init__(self, cwd: str, reason: str):
        self.cwd = cwd
        self.reason = reason
        super().__init__(f"Failed to spawn terminal in {cwd or '<default>'}: {reason}")


class TransportFailure(TermPanelError):
    """A best-effort call (close, resize, send_input) did not succeed."""

    def __init__(self, op: str, session_id: str, reason: str):
        self.op = op
        self.session_id = session_id
        self.reason = reason
        super().__init__(f"{op} failed for {session_id}: {reason}")


class SurfaceDisposedError(TermPanelError):
    """Raised when output is written into a surface that was already disposed."""

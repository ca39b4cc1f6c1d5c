"""
Terminal sessions: PTY processes, pyte surfaces and the views that hold them.

Supports Windows (ConPTY via pywinpty) and Unix (pty module).
"""

from .spawner import PtySpawner, SessionBackend
from .surface import RenderSurface, SurfaceFactory
from .view import HeadlessView, ViewHandle

__all__ = [
    "HeadlessView",
    "PtySpawner",
    "RenderSurface",
    "SessionBackend",
    "SurfaceFactory",
    "ViewHandle",
]

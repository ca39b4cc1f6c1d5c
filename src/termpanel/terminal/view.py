"""
View handles: the visual container a session occupies.

The registry owns one handle per session but never looks inside it; only the
resize coordinator asks it for its size.
"""
from __future__ import annotations

from typing import Protocol, Tuple


class ViewHandle(Protocol):
    @property
    def attached(self) -> bool: ...

    @property
    def visible(self) -> bool: ...

    def attach(self) -> None:
        """Insert the container into the panel layout."""

    def detach(self) -> None:
        """Remove the container from the layout and release it."""

    def set_visible(self, visible: bool) -> None: ...

    def measure(self) -> Tuple[int, int]:
        """Laid-out (width, height) in pixels; (0, 0) while detached or hidden."""


class HeadlessView:
    """A view with a fixed pixel box and no toolkit behind it."""

    def __init__(self, session_id: str, width: int = 800, height: int = 300):
        self.session_id = session_id
        self.width = width
        self.height = height
        self._attached = False
        self._visible = False

    @property
    def attached(self) -> bool:
        return self._attached

    @property
    def visible(self) -> bool:
        return self._visible

    def attach(self) -> None:
        self._attached = True

    def detach(self) -> None:
        self._attached = False
        self._visible = False

    def set_visible(self, visible: bool) -> None:
        self._visible = visible and self._attached

    def set_size(self, width: int, height: int) -> None:
        self.width = width
        self.height = height

    def measure(self) -> Tuple[int, int]:
        if not (self._attached and self._visible):
            return 0, 0
        return self.width, self.height

    def __repr__(self) -> str:
        state = "visible" if self._visible else ("attached" if self._attached else "detached")
        return f"HeadlessView({self.session_id} {self.width}x{self.height} {state})"

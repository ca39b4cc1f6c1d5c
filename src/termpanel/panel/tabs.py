"""
TabController: one tab per session, in creation order, exactly one active.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from .registry import RemoveResult, Session, SessionRegistry
from .resize import ResizeCoordinator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TabView:
    """What the tab strip draws for one session."""

    session_id: str
    label: str
    active: bool
    editing: bool = False
    exited: bool = False


@dataclass
class RenameEdit:
    """An in-progress inline rename of one tab label."""

    session_id: str
    text: str
    # Selected range in ``text``; the whole label starts selected
    selection: tuple[int, int] = (0, 0)


class TabController:
    def __init__(
        self,
        registry: SessionRegistry,
        resize: ResizeCoordinator,
        on_change: Optional[Callable[[List[TabView]], None]] = None,
        on_empty: Optional[Callable[[], None]] = None,
    ):
        self._registry = registry
        self._resize = resize
        self.on_change = on_change
        # Called when closing a tab leaves no sessions at all
        self.on_empty = on_empty
        self.editing: Optional[RenameEdit] = None

    # ── Rendering ────────────────────────────────────────────────

    def tabs(self) -> List[TabView]:
        active_id = self._registry.active_id
        views = []
        for session in self._registry.sessions():
            editing = self.editing is not None and self.editing.session_id == session.id
            views.append(TabView(
                session_id=session.id,
                label=self.editing.text if editing else session.display_name,
                active=session.id == active_id,
                editing=editing,
                exited=session.exited,
            ))
        return views

    def render(self) -> None:
        if self.on_change is not None:
            self.on_change(self.tabs())

    # ── Selection ────────────────────────────────────────────────

    async def add(self, cwd: str = "") -> Session:
        """Create a session and make it the focused tab. Raises SpawnFailure."""
        previous = self._registry.active
        session = await self._registry.create(cwd)
        if previous is not None and previous.id != session.id:
            self._deactivate(previous)
        session.view.set_visible(self._resize.visible)
        self._resize.schedule_initial_fit(session)
        session.surface.focus()
        self.render()
        return session

    def click(self, session_id: str) -> bool:
        """Activate the tab for ``session_id``. Returns False if nothing changed."""
        if session_id == self._registry.active_id or session_id not in self._registry:
            return False
        previous = self._registry.active
        if previous is not None:
            self._deactivate(previous)
        self._activate(session_id)
        self.render()
        return True

    def focus_active(self) -> None:
        """Fit, then focus, the active session (used when the panel is revealed)."""
        session = self._registry.active
        if session is None:
            return
        session.view.set_visible(True)
        self._resize.reveal()
        session.surface.focus()

    def _activate(self, session_id: str) -> None:
        session = self._registry.set_active(session_id)
        session.view.set_visible(self._resize.visible)
        # Its layout box may be stale from before it was last active
        self._resize.refit(session_id)
        session.surface.focus()

    def _deactivate(self, session: Session) -> None:
        session.surface.blur()
        session.view.set_visible(False)

    # ── Close ────────────────────────────────────────────────────

    def close(self, session_id: str) -> RemoveResult:
        if self.editing is not None and self.editing.session_id == session_id:
            self.editing = None
        result = self._registry.remove(session_id)
        if not result.removed:
            return result

        if result.registry_now_empty:
            if self.on_empty is not None:
                self.on_empty()
        elif result.was_active:
            # Explicit policy: most recently created survivor, not most recently used
            successor = self._registry.most_recent()
            self._activate(successor.id)
        self.render()
        return result

    # ── Rename ───────────────────────────────────────────────────

    def begin_rename(self, session_id: str) -> RenameEdit:
        session = self._registry.get(session_id)
        if session is None:
            raise KeyError(session_id)
        if self.editing is not None and self.editing.session_id != session_id:
            self.blur_rename()
        name = session.display_name
        self.editing = RenameEdit(session_id, name, (0, len(name)))
        self.render()
        return self.editing

    def edit_rename(self, text: str) -> None:
        if self.editing is None:
            return
        self.editing.text = text
        self.editing.selection = (len(text), len(text))
        self.render()

    def key_rename(self, key: str) -> None:
        """Enter commits, Escape reverts; other keys are the editor's business."""
        if self.editing is None:
            return
        if key == "Return" or key == "Enter":
            self.blur_rename()
        elif key == "Escape":
            self.cancel_rename()

    def blur_rename(self) -> None:
        """Commit a non-blank edit; a blank one reverts."""
        edit = self.editing
        if edit is None:
            return
        self.editing = None
        name = edit.text.strip()
        if name and edit.session_id in self._registry:
            self._registry.rename(edit.session_id, name)
        self.render()

    def cancel_rename(self) -> None:
        if self.editing is None:
            return
        self.editing = None
        self.render()

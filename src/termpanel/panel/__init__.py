"""
Tabbed multiplexer of terminal sessions.

The panel is assembled from five parts: the session registry, the output
router, the resize coordinator, the tab controller and the panel controller.
"""

from .panel import PanelController, create_panel
from .registry import RemoveResult, Session, SessionRegistry
from .resize import ResizeCoordinator
from .router import EXIT_MARKER, OutputRouter
from .scheduler import AsyncioFrameScheduler, FrameScheduler
from .tabs import RenameEdit, TabController, TabView
from .transport import BestEffort

__all__ = [
    "AsyncioFrameScheduler",
    "BestEffort",
    "EXIT_MARKER",
    "FrameScheduler",
    "OutputRouter",
    "PanelController",
    "RemoveResult",
    "RenameEdit",
    "ResizeCoordinator",
    "Session",
    "SessionRegistry",
    "TabController",
    "TabView",
    "create_panel",
]

"""
Pytest configuration and fixtures.
"""

import shutil
import sys
import tempfile
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from termpanel.config import PanelConfig
from termpanel.errors import SpawnFailure, TransportFailure
from termpanel.events import EventBus, encode_chunk, exit_event, output_event
from termpanel.panel import create_panel
from termpanel.terminal.view import HeadlessView
from termpanel.theme import FontMetrics

# 8x16 cells: an 800x300 view fits (800-8)//8 = 99 cols, (300-8)//16 = 18 rows
TEST_FONT = FontMetrics(family="mono", size=13, cell_width=8, cell_height=16)


class FakeBackend:
    """In-memory session backend recording every call."""

    def __init__(self):
        self.bus = EventBus()
        self.calls = []
        self.fail_spawn = False
        # op names, or (op, session_id) pairs, that should fail
        self.fail = set()
        self.live = set()
        self._next = 0

    async def spawn(self, cwd):
        self.calls.append(("spawn", cwd))
        if self.fail_spawn:
            raise SpawnFailure(cwd, "no pty available")
        self._next += 1
        session_id = f"term-{self._next}"
        self.live.add(session_id)
        return session_id

    async def close(self, session_id):
        self.calls.append(("close", session_id))
        self._maybe_fail("close", session_id)
        self.live.discard(session_id)

    async def resize(self, session_id, rows, cols):
        self.calls.append(("resize", session_id, rows, cols))
        self._maybe_fail("resize", session_id)

    async def send_input(self, session_id, data):
        self.calls.append(("send_input", session_id, data))
        self._maybe_fail("send_input", session_id)

    def subscribe_output(self, session_id, handler):
        return self.bus.listen(output_event(session_id), handler)

    def subscribe_exit(self, session_id, handler):
        return self.bus.listen(exit_event(session_id), handler)

    def emit_output(self, session_id, data: bytes):
        return self.bus.emit(output_event(session_id), encode_chunk(data))

    def emit_exit(self, session_id):
        return self.bus.emit(exit_event(session_id), None)

    def ops(self, op):
        return [call for call in self.calls if call[0] == op]

    def _maybe_fail(self, op, session_id):
        if op in self.fail or (op, session_id) in self.fail:
            raise TransportFailure(op, session_id, "fake transport down")


class ManualScheduler:
    """Frames only happen when the test says so."""

    def __init__(self):
        self.pending = []

    def request_frame(self, callback):
        self.pending.append(callback)

    def run_frames(self):
        pending, self.pending = self.pending, []
        for callback in pending:
            callback()
        return len(pending)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp = tempfile.mkdtemp()
    yield Path(temp)
    shutil.rmtree(temp, ignore_errors=True)


@pytest.fixture
def config_home(temp_dir, monkeypatch):
    """Point the platform config directory at a temp dir."""
    import termpanel.settings as settings_mod

    monkeypatch.setattr(settings_mod, "get_config_dir", lambda: temp_dir / "termpanel")
    monkeypatch.setattr("termpanel.config.get_config_dir", lambda: temp_dir / "termpanel")
    yield temp_dir / "termpanel"


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def failures():
    return []


@pytest.fixture
def persisted_heights():
    return []


@pytest.fixture
def views():
    """Every view the panel created, by session id."""
    return {}


@pytest.fixture
def panel(backend, scheduler, failures, persisted_heights, views):
    def make_view(session_id, surface):
        view = HeadlessView(session_id, 800, 300)
        views[session_id] = view
        return view

    return create_panel(
        backend,
        PanelConfig(),
        make_view,
        font=TEST_FONT,
        scheduler=scheduler,
        on_failure=failures.append,
        cwd_provider=lambda: "/tmp",
        persist_height=persisted_heights.append,
    )


@pytest.fixture
def registry(panel):
    return panel.registry

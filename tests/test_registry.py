"""
Tests for panel/registry.py - SessionRegistry lifecycle.
"""

import pytest

from termpanel.config import PanelConfig
from termpanel.errors import SpawnFailure, TransportFailure
from termpanel.events import output_event, exit_event
from termpanel.panel import create_panel
from termpanel.terminal.view import HeadlessView

from conftest import TEST_FONT


class TestCreate:
    @pytest.mark.asyncio
    async def test_end_to_end_create_and_remove(self, registry, backend):
        first = await registry.create("/tmp")

        assert len(registry) == 1
        assert registry.active_id == first.id
        assert first.display_name == "Terminal 1"

        second = await registry.create("/tmp")

        assert len(registry) == 2
        assert registry.active_id == second.id
        assert second.display_name == "Terminal 2"

        result = registry.remove(first.id)

        assert result.removed
        assert result.registry_now_empty is False
        assert len(registry) == 1
        assert registry.active_id == second.id

        await registry.transport.drain()
        assert backend.ops("close") == [("close", first.id)]

    @pytest.mark.asyncio
    async def test_create_passes_cwd(self, registry, backend):
        await registry.create("")

        assert backend.ops("spawn") == [("spawn", "")]

    @pytest.mark.asyncio
    async def test_names_never_reused_after_churn(self, registry):
        a = await registry.create("/tmp")
        registry.remove(a.id)
        b = await registry.create("/tmp")
        c = await registry.create("/tmp")
        registry.remove(b.id)
        d = await registry.create("/tmp")

        assert [a.display_name, b.display_name, c.display_name, d.display_name] == [
            "Terminal 1", "Terminal 2", "Terminal 3", "Terminal 4",
        ]
        assert [s.created_seq for s in registry.sessions()] == [3, 4]

    @pytest.mark.asyncio
    async def test_spawn_failure_leaves_registry_untouched(self, registry, backend):
        existing = await registry.create("/tmp")
        backend.fail_spawn = True

        with pytest.raises(SpawnFailure):
            await registry.create("/nope")

        assert len(registry) == 1
        assert registry.active_id == existing.id

        backend.fail_spawn = False
        again = await registry.create("/tmp")
        # The failed attempt did not consume a name
        assert again.display_name == "Terminal 2"

    @pytest.mark.asyncio
    async def test_unexpected_spawn_error_becomes_spawn_failure(self, registry, backend):
        async def broken(cwd):
            raise OSError("out of ptys")

        backend.spawn = broken

        with pytest.raises(SpawnFailure) as exc:
            await registry.create("/tmp")

        assert "out of ptys" in exc.value.reason
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_duplicate_id_is_rejected(self, registry, backend):
        async def same_id(cwd):
            return "term-1"

        await registry.create("/tmp")
        backend.spawn = same_id

        with pytest.raises(SpawnFailure):
            await registry.create("/tmp")

        assert len(registry) == 1

    @pytest.mark.asyncio
    async def test_create_wires_exclusive_resources(self, registry, backend):
        a = await registry.create("/tmp")
        b = await registry.create("/tmp")

        assert a.surface is not b.surface
        assert a.view is not b.view
        assert a.view.attached
        assert backend.bus.listener_count(output_event(a.id)) == 1
        assert backend.bus.listener_count(exit_event(a.id)) == 1


class TestCreateAfterSpawn:
    """Failures while wiring a freshly spawned session."""

    @staticmethod
    def make_panel(backend, failures, view_factory):
        return create_panel(
            backend,
            PanelConfig(),
            view_factory,
            font=TEST_FONT,
            on_failure=failures.append,
            cwd_provider=lambda: "/tmp",
        )

    @pytest.mark.asyncio
    async def test_broken_view_closes_spawned_process(self, backend, failures):
        def broken_view(session_id, surface):
            raise RuntimeError("no display")

        panel = self.make_panel(backend, failures, broken_view)

        assert await panel.add_session("/tmp") is None
        await panel.registry.transport.drain()

        assert backend.ops("spawn") == [("spawn", "/tmp")]
        assert backend.ops("close") == [("close", "term-1")]
        assert backend.live == set()
        assert len(panel.registry) == 0

    @pytest.mark.asyncio
    async def test_failed_wiring_raises_spawn_failure_and_keeps_counter(self, backend, failures):
        attempts = []

        def flaky_view(session_id, surface):
            attempts.append(session_id)
            if len(attempts) == 1:
                raise RuntimeError("no display")
            return HeadlessView(session_id)

        registry = self.make_panel(backend, failures, flaky_view).registry

        with pytest.raises(SpawnFailure) as exc:
            await registry.create("/tmp")
        assert "no display" in exc.value.reason

        session = await registry.create("/tmp")

        assert session.display_name == "Terminal 1"
        assert session.created_seq == 1

    @pytest.mark.asyncio
    async def test_partial_subscriptions_are_undone(self, backend, failures):
        built = []

        class UnattachableView(HeadlessView):
            def attach(self):
                raise RuntimeError("container gone")

        def view_factory(session_id, surface):
            built.append(surface)
            return UnattachableView(session_id)

        registry = self.make_panel(backend, failures, view_factory).registry

        with pytest.raises(SpawnFailure):
            await registry.create("/tmp")
        await registry.transport.drain()

        assert backend.bus.listener_count(output_event("term-1")) == 0
        assert backend.bus.listener_count(exit_event("term-1")) == 0
        assert built[0].disposed
        assert backend.ops("close") == [("close", "term-1")]


class TestSessionState:
    @pytest.mark.asyncio
    async def test_mark_exited_only_once(self, registry):
        session = await registry.create("/tmp")

        assert registry.mark_exited(session.id) is True
        assert registry.mark_exited(session.id) is False
        assert session.exited

    def test_mark_exited_unknown(self, registry):
        assert registry.mark_exited("term-9") is False

    @pytest.mark.asyncio
    async def test_record_geometry(self, registry):
        session = await registry.create("/tmp")

        registry.record_geometry(session.id, (30, 120))
        registry.record_geometry("term-9", (1, 2))

        assert session.geometry == (30, 120)


class TestRemove:
    @pytest.mark.asyncio
    async def test_remove_unsubscribes_before_dispose(self, registry, backend):
        session = await registry.create("/tmp")

        registry.remove(session.id)

        assert backend.bus.listener_count(output_event(session.id)) == 0
        assert backend.bus.listener_count(exit_event(session.id)) == 0
        # A late event finds nobody listening and nothing is written
        assert backend.emit_output(session.id, b"late") == 0
        assert session.surface.disposed
        assert not session.view.attached

    @pytest.mark.asyncio
    async def test_remove_twice_has_no_effect(self, registry, backend):
        session = await registry.create("/tmp")

        assert registry.remove(session.id).removed is True
        second = registry.remove(session.id)

        assert second.removed is False
        assert second.registry_now_empty is True
        await registry.transport.drain()
        assert backend.ops("close") == [("close", session.id)]

    @pytest.mark.asyncio
    async def test_remove_last_reports_empty(self, registry):
        session = await registry.create("/tmp")

        result = registry.remove(session.id)

        assert result.registry_now_empty is True
        assert result.was_active is True
        assert registry.active_id is None

    @pytest.mark.asyncio
    async def test_close_failure_is_reported_not_raised(self, registry, backend, failures):
        session = await registry.create("/tmp")
        backend.fail.add("close")

        result = registry.remove(session.id)
        await registry.transport.drain()

        assert result.removed
        assert len(failures) == 1
        assert isinstance(failures[0], TransportFailure)
        assert failures[0].op == "close"
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_count_tracks_creates_minus_removes(self, registry):
        ids = [(await registry.create("/tmp")).id for _ in range(5)]
        removed = 0
        for session_id in ids[::2] + ids[:1]:
            if registry.remove(session_id).removed:
                removed += 1

        assert removed == 3
        assert len(registry) == 5 - removed


class TestMostRecent:
    @pytest.mark.asyncio
    async def test_most_recent_uses_created_seq(self, registry):
        a = await registry.create("/tmp")
        b = await registry.create("/tmp")
        registry.set_active(a.id)

        assert registry.most_recent() is b

    def test_most_recent_on_empty(self, registry):
        assert registry.most_recent() is None


class TestRename:
    @pytest.mark.asyncio
    async def test_rename_strips(self, registry):
        session = await registry.create("/tmp")

        registry.rename(session.id, "  Build  ")

        assert session.display_name == "Build"

    @pytest.mark.asyncio
    async def test_blank_rename_rejected(self, registry):
        session = await registry.create("/tmp")

        with pytest.raises(ValueError):
            registry.rename(session.id, "   ")

        assert session.display_name == "Terminal 1"

    def test_rename_unknown(self, registry):
        with pytest.raises(KeyError):
            registry.rename("term-99", "x")


class TestInputForwarding:
    @pytest.mark.asyncio
    async def test_keystrokes_reach_backend_in_order(self, registry, backend):
        session = await registry.create("/tmp")

        for key in (b"l", b"s", b"\r"):
            session.surface.input(key)
        await registry.transport.drain()

        assert backend.ops("send_input") == [
            ("send_input", session.id, b"l"),
            ("send_input", session.id, b"s"),
            ("send_input", session.id, b"\r"),
        ]

    @pytest.mark.asyncio
    async def test_send_input_failure_is_reported(self, registry, backend, failures):
        session = await registry.create("/tmp")
        backend.fail.add("send_input")

        session.surface.input(b"x")
        await registry.transport.drain()

        assert [f.op for f in failures] == ["send_input"]
        assert session.id in registry


class TestCloseAll:
    @pytest.mark.asyncio
    async def test_one_close_per_session_despite_failures(self, registry, backend, failures):
        ids = [(await registry.create("/tmp")).id for _ in range(4)]
        backend.fail.add(("close", ids[1]))
        backend.fail.add(("close", ids[2]))

        issued = await registry.close_all()

        assert issued == 4
        closed = [call[1] for call in backend.ops("close")]
        assert sorted(closed) == sorted(ids)
        assert len(set(closed)) == 4
        assert len(failures) == 2

    @pytest.mark.asyncio
    async def test_close_all_leaves_ui_state_alone(self, registry):
        a = await registry.create("/tmp")

        await registry.close_all()

        assert a.id in registry
        assert not a.surface.disposed

    @pytest.mark.asyncio
    async def test_close_all_runs_once(self, registry, backend):
        await registry.create("/tmp")

        await registry.close_all()
        assert await registry.close_all() == 0

        assert len(backend.ops("close")) == 1

"""
Tests for terminal/spawner.py and processes.py.

The scripted PTY drives PtySpawner without a real shell; the real-PTY tests
run only where a POSIX /bin/sh exists.
"""

import asyncio
import queue
import sys
from pathlib import Path

import pytest

from termpanel.errors import SpawnFailure, TransportFailure
from termpanel.events import decode_chunk
from termpanel.processes import shell_command, terminal_env
from termpanel.terminal.pty_backend import PTYBackend
from termpanel.terminal.spawner import PtySpawner


class ScriptedPTY(PTYBackend):
    """PTY whose output is fed by the test, one chunk per read."""

    def __init__(self, fail_spawn=False):
        self.fail_spawn = fail_spawn
        self.chunks = queue.Queue()
        self.written = []
        self.sizes = []
        self.spawned_with = None
        self.terminated = False
        self.closed = False

    @property
    def pid(self):
        return 4242

    def spawn(self, cmd, cwd, size=(24, 80), env=None):
        if self.fail_spawn:
            raise OSError("no ptys left")
        self.spawned_with = (cmd, cwd, size)

    def read(self, size=4096, timeout=0.05):
        try:
            return self.chunks.get(timeout=timeout)
        except queue.Empty:
            return b""

    def write(self, data):
        self.written.append(data)

    def resize(self, rows, cols):
        self.sizes.append((rows, cols))

    def is_alive(self):
        return not self.terminated

    def terminate(self):
        self.terminated = True
        self.chunks.put(None)

    def close(self):
        self.closed = True


async def wait_for(predicate, timeout=5.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


@pytest.fixture
def ptys():
    return []


@pytest.fixture
def spawner(ptys):
    def factory():
        pty = ScriptedPTY()
        ptys.append(pty)
        return pty

    spawner = PtySpawner(shell="/bin/sh", login=False, pty_factory=factory)
    yield spawner
    spawner.shutdown()


class TestSpawn:
    @pytest.mark.asyncio
    async def test_ids_are_sequential(self, spawner, temp_dir):
        first = await spawner.spawn(str(temp_dir))
        second = await spawner.spawn(str(temp_dir))

        assert (first, second) == ("term-1", "term-2")

    @pytest.mark.asyncio
    async def test_empty_cwd_means_home(self, spawner, ptys):
        await spawner.spawn("")

        assert ptys[0].spawned_with[1] == str(Path.home())

    @pytest.mark.asyncio
    async def test_missing_cwd_fails(self, spawner, temp_dir):
        with pytest.raises(SpawnFailure) as exc:
            await spawner.spawn(str(temp_dir / "gone"))

        assert "does not exist" in exc.value.reason

    @pytest.mark.asyncio
    async def test_pty_error_becomes_spawn_failure(self, temp_dir):
        spawner = PtySpawner(pty_factory=lambda: ScriptedPTY(fail_spawn=True))

        with pytest.raises(SpawnFailure):
            await spawner.spawn(str(temp_dir))

        assert "term-1" not in spawner


class TestStreaming:
    @pytest.mark.asyncio
    async def test_output_is_posted_in_order(self, spawner, ptys, temp_dir):
        session_id = await spawner.spawn(str(temp_dir))
        got = []
        spawner.subscribe_output(session_id, lambda payload: got.append(decode_chunk(payload)))

        for chunk in (b"one ", b"two ", b"three"):
            ptys[0].chunks.put(chunk)
        await wait_for(lambda: len(got) == 3)

        assert b"".join(got) == b"one two three"

    @pytest.mark.asyncio
    async def test_exit_posted_once_and_pty_closed(self, spawner, ptys, temp_dir):
        session_id = await spawner.spawn(str(temp_dir))
        exits = []
        spawner.subscribe_exit(session_id, exits.append)

        ptys[0].chunks.put(None)
        await wait_for(lambda: exits)
        await asyncio.sleep(0.1)

        assert exits == [None]
        assert ptys[0].closed

    @pytest.mark.asyncio
    async def test_input_and_resize_reach_pty(self, spawner, ptys, temp_dir):
        session_id = await spawner.spawn(str(temp_dir))

        await spawner.send_input(session_id, b"ls\r")
        await spawner.resize(session_id, 30, 100)

        assert ptys[0].written == [b"ls\r"]
        assert ptys[0].sizes == [(30, 100)]


class TestClose:
    @pytest.mark.asyncio
    async def test_close_terminates_and_forgets(self, spawner, ptys, temp_dir):
        session_id = await spawner.spawn(str(temp_dir))

        await spawner.close(session_id)

        assert ptys[0].terminated
        assert session_id not in spawner

    @pytest.mark.asyncio
    async def test_close_unknown_is_harmless(self, spawner):
        await spawner.close("term-99")

    @pytest.mark.asyncio
    async def test_calls_on_unknown_session_fail(self, spawner):
        with pytest.raises(TransportFailure) as exc:
            await spawner.resize("term-99", 10, 10)
        assert exc.value.op == "resize"

        with pytest.raises(TransportFailure):
            await spawner.send_input("term-99", b"x")


class TestProcesses:
    def test_terminal_env(self):
        env = terminal_env({"FOO": "bar"})

        assert env["TERM"] == "xterm-256color"
        assert env["FOO"] == "bar"

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX shells only")
    def test_login_flag(self):
        assert shell_command("/bin/sh", login=True) == ["/bin/sh", "-l"]
        assert shell_command("/bin/sh", login=False) == ["/bin/sh"]


@pytest.mark.skipif(
    sys.platform == "win32" or not Path("/bin/sh").exists(),
    reason="needs a POSIX shell",
)
class TestRealShell:
    @pytest.mark.asyncio
    async def test_round_trip_through_shell(self, temp_dir):
        spawner = PtySpawner(shell="/bin/sh", login=False)
        output = bytearray()
        exits = []
        try:
            session_id = await spawner.spawn(str(temp_dir))
            spawner.subscribe_output(session_id, lambda p: output.extend(decode_chunk(p)))
            spawner.subscribe_exit(session_id, exits.append)

            await spawner.send_input(session_id, b"echo $((6*7))\n")
            await wait_for(lambda: b"42" in output)

            await spawner.send_input(session_id, b"exit\n")
            await wait_for(lambda: exits)
        finally:
            spawner.shutdown()

        assert exits == [None]

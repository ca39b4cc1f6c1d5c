"""
Cross-platform PTY backend.

Uses pywinpty on Windows, built-in pty on Unix. All I/O is bytes: terminal
output may contain arbitrary byte values that are not valid text.
"""
from __future__ import annotations

import os
import sys
import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple

from ..processes import kill_tree

logger = logging.getLogger(__name__)


class PTYBackend(ABC):
    """Abstract PTY backend."""

    @abstractmethod
    def spawn(self, cmd: list[str], cwd: str, size: Tuple[int, int] = (24, 80),
              env: Optional[Dict[str, str]] = None) -> None:
        """Spawn a process in PTY."""
        pass

    @abstractmethod
    def read(self, size: int = 4096, timeout: float = 0.05) -> Optional[bytes]:
        """Read from PTY. Returns b"" when nothing arrived in time, None at EOF."""
        pass

    @abstractmethod
    def write(self, data: bytes) -> None:
        """Write to PTY."""
        pass

    @abstractmethod
    def resize(self, rows: int, cols: int) -> None:
        """Resize PTY."""
        pass

    @abstractmethod
    def is_alive(self) -> bool:
        """Check if process is still running."""
        pass

    @abstractmethod
    def terminate(self) -> None:
        """Terminate the process."""
        pass

    def close(self) -> None:
        """Release OS handles once no more reads will happen."""
        pass

    @property
    @abstractmethod
    def pid(self) -> Optional[int]:
        pass


class WindowsPTY(PTYBackend):
    """Windows PTY using pywinpty/ConPTY."""

    def __init__(self):
        self.process = None

    @property
    def pid(self) -> Optional[int]:
        return self.process.pid if self.process else None

    def spawn(self, cmd: list[str], cwd: str, size: Tuple[int, int] = (24, 80),
              env: Optional[Dict[str, str]] = None) -> None:
        try:
            from winpty import PtyProcess
        except ImportError:
            raise ImportError("pywinpty is required on Windows. Install with: pip install pywinpty")

        cmd_str = " ".join(cmd) if isinstance(cmd, list) else cmd

        self.process = PtyProcess.spawn(
            cmd_str,
            cwd=cwd,
            env=env,
            dimensions=(size[0], size[1])
        )
        logger.info(f"[TERMINAL] WindowsPTY spawned: {cmd_str}")

    def read(self, size: int = 4096, timeout: float = 0.05) -> Optional[bytes]:
        if not self.process:
            return None
        try:
            data = self.process.read(size)
        except EOFError:
            return None
        return data.encode("utf-8", errors="replace") if data else b""

    def write(self, data: bytes) -> None:
        if self.process:
            self.process.write(data.decode("utf-8", errors="replace"))

    def resize(self, rows: int, cols: int) -> None:
        if self.process:
            self.process.setwinsize(rows, cols)

    def is_alive(self) -> bool:
        return self.process is not None and self.process.isalive()

    def terminate(self) -> None:
        if self.process:
            pid = self.process.pid
            try:
                self.process.terminate(force=True)
            except Exception as e:
                logger.debug(f"[TERMINAL] WindowsPTY terminate | pid={pid} error={e}")
                kill_tree(pid)
            self.process = None


class UnixPTY(PTYBackend):
    """Unix PTY using built-in pty module."""

    def __init__(self):
        self.master_fd: Optional[int] = None
        self.slave_fd: Optional[int] = None
        self._pid: Optional[int] = None
        self.exit_status: Optional[int] = None

    @property
    def pid(self) -> Optional[int]:
        return self._pid

    def spawn(self, cmd: list[str], cwd: str, size: Tuple[int, int] = (24, 80),
              env: Optional[Dict[str, str]] = None) -> None:
        import pty
        import fcntl
        import struct
        import termios

        if not os.path.isdir(cwd):
            raise FileNotFoundError(f"Working directory does not exist: {cwd}")

        # Create PTY pair
        self.master_fd, self.slave_fd = pty.openpty()

        # Set terminal size
        winsize = struct.pack('HHHH', size[0], size[1], 0, 0)
        fcntl.ioctl(self.slave_fd, termios.TIOCSWINSZ, winsize)

        # Fork process
        pid = os.fork()

        if pid == 0:
            # Child process: never return into the parent's interpreter state
            try:
                os.close(self.master_fd)
                os.setsid()

                # Set controlling terminal
                fcntl.ioctl(self.slave_fd, termios.TIOCSCTTY, 0)

                # Redirect stdio
                os.dup2(self.slave_fd, 0)
                os.dup2(self.slave_fd, 1)
                os.dup2(self.slave_fd, 2)

                if self.slave_fd > 2:
                    os.close(self.slave_fd)

                os.chdir(cwd)
                if env is not None:
                    os.execvpe(cmd[0], cmd, env)
                os.execvp(cmd[0], cmd)
            finally:
                os._exit(127)

        # Parent process
        self._pid = pid
        os.close(self.slave_fd)
        self.slave_fd = None

        flags = fcntl.fcntl(self.master_fd, fcntl.F_GETFL)
        fcntl.fcntl(self.master_fd, fcntl.F_SETFL, flags | os.O_NONBLOCK)

        logger.info(f"[TERMINAL] UnixPTY spawned PID {pid}: {cmd}")

    def read(self, size: int = 4096, timeout: float = 0.05) -> Optional[bytes]:
        import select

        fd = self.master_fd
        if fd is None:
            return None
        try:
            ready, _, _ = select.select([fd], [], [], timeout)
        except (OSError, ValueError):
            return None
        if not ready:
            return b""
        try:
            data = os.read(fd, size)
        except BlockingIOError:
            return b""
        except OSError:
            # EIO: slave side closed, the child is gone
            return None
        return data or None

    def write(self, data: bytes) -> None:
        if self.master_fd is None or self._pid is None:
            raise OSError("PTY is closed")
        view = memoryview(data)
        while view:
            try:
                written = os.write(self.master_fd, view)
            except BlockingIOError:
                import select
                select.select([], [self.master_fd], [], 1.0)
                continue
            view = view[written:]

    def resize(self, rows: int, cols: int) -> None:
        if self.master_fd is None:
            raise OSError("PTY is closed")
        import fcntl
        import struct
        import termios
        winsize = struct.pack('HHHH', rows, cols, 0, 0)
        fcntl.ioctl(self.master_fd, termios.TIOCSWINSZ, winsize)

    def is_alive(self) -> bool:
        if self._pid is None or self.exit_status is not None:
            return False
        try:
            pid, status = os.waitpid(self._pid, os.WNOHANG)
        except ChildProcessError:
            return False
        if pid == 0:
            return True
        self.exit_status = os.waitstatus_to_exitcode(status)
        return False

    def terminate(self) -> None:
        if self._pid:
            if self.exit_status is None:
                kill_tree(self._pid)
                try:
                    os.waitpid(self._pid, 0)
                except ChildProcessError:
                    pass
            self._pid = None

    def close(self) -> None:
        """Release the master fd. Called by the reader once it has seen EOF."""
        if self.master_fd is not None:
            try:
                os.close(self.master_fd)
            except OSError:
                pass
            self.master_fd = None


def create_pty_backend() -> PTYBackend:
    """Create appropriate PTY backend for current platform."""
    if sys.platform == "win32":
        return WindowsPTY()
    else:
        return UnixPTY()

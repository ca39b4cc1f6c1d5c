from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Optional

import psutil


def which(cmd: str) -> Optional[str]:
    from shutil import which as _which
    return _which(cmd)


def kill_tree(pid: int) -> None:
    """Kill a process and all of its children."""
    try:
        parent = psutil.Process(pid)
    except psutil.NoSuchProcess:
        return
    for child in parent.children(recursive=True):
        try:
            child.kill()
        except psutil.NoSuchProcess:
            pass
    try:
        parent.kill()
    except psutil.NoSuchProcess:
        pass


def default_shell() -> str:
    """The user's shell: $SHELL on Unix, %COMSPEC% on Windows."""
    if sys.platform == "win32":
        return os.environ.get("COMSPEC") or "cmd.exe"
    shell = os.environ.get("SHELL")
    if shell and Path(shell).exists():
        return shell
    return which("bash") or "/bin/sh"


def shell_command(shell: Optional[str] = None, login: bool = True) -> list[str]:
    cmd = [shell or default_shell()]
    # cmd.exe / powershell have no notion of a login shell
    if login and sys.platform != "win32":
        cmd.append("-l")
    return cmd


def terminal_env(extra: Optional[dict[str, str]] = None) -> dict[str, str]:
    env = {**os.environ, "TERM": "xterm-256color", "COLORTERM": "truecolor"}
    if extra:
        env.update(extra)
    return env

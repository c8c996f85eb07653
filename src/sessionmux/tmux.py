"""tmux adapter.

All interaction with the tmux server goes through :class:`Tmux`. Sessions
are addressed with exact-match targets (``=name``) so that ``api`` never
resolves to ``api-shell``; windows and panes are addressed by their ids
(``@3``, ``%7``), which stay valid whatever base-index the server uses.
"""
import logging
import os
import re
import subprocess
import time
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Tuple, Union

from . import proc
from .exceptions import TmuxCommandError, TmuxEnvironmentError
from .options import OptionKind

logger = logging.getLogger(__name__)

_VERSION = re.compile(r"(\d+)\.(\d+)")


class Readiness(Enum):
    """Outcome of a bounded readiness poll."""
    READY = "ready"
    TIMED_OUT = "timed_out"


def parse_version(text: str) -> Optional[Tuple[int, int]]:
    """Extract (major, minor) from ``tmux -V`` output such as ``tmux 3.3a``."""
    if "master" in text:
        return (99, 0)
    match = _VERSION.search(text)
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


def session_target(name: str) -> str:
    return f"={name}"


def pane_target(name: str) -> str:
    """Active pane of a session's active window."""
    return f"={name}:"


class Tmux:
    """Thin wrapper around the tmux command line."""

    def __init__(self, binary: str = "tmux"):
        self.binary = binary

    def _execute(self, argv: List[str]) -> subprocess.CompletedProcess:
        return proc.run(argv)

    def run(self, *args: str, check: bool = True,
            config_file: Optional[Union[str, Path]] = None) -> subprocess.CompletedProcess:
        """Run a tmux command. Raises TmuxCommandError on failure when ``check``."""
        argv = [self.binary]
        if config_file:
            argv.extend(["-f", str(config_file)])
        argv.extend(args)

        result = self._execute(argv)
        if check and result.returncode != 0:
            raise TmuxCommandError(argv, result.returncode, result.stderr or "")
        return result

    def query(self, *args: str) -> Optional[str]:
        """Run a read-only command and return its stripped output, or None."""
        result = self.run(*args, check=False)
        if result.returncode != 0:
            return None
        return (result.stdout or "").strip()

    def _lines(self, *args: str) -> List[str]:
        output = self.query(*args)
        return [line for line in output.splitlines() if line] if output else []

    # Environment

    def version(self) -> Optional[Tuple[int, int]]:
        output = self.query("-V")
        return parse_version(output) if output else None

    def ensure_available(self, min_version: str = "2.6"):
        version = self.version()
        if version is None:
            raise TmuxEnvironmentError(f"{self.binary} not found; install tmux to use sessionmux")
        minimum = parse_version(min_version) or (0, 0)
        if version < minimum:
            raise TmuxEnvironmentError(
                f"tmux {version[0]}.{version[1]} is too old, {min_version} or newer is required")

    # Sessions

    def has_session(self, name: str) -> bool:
        return self.run("has-session", "-t", session_target(name), check=False).returncode == 0

    def new_session(self, name: str, start_dir: Union[str, Path],
                    config_file: Optional[Union[str, Path]] = None) -> str:
        """Create a detached session and return the id of its first window."""
        result = self.run("new-session", "-d", "-s", name, "-c", str(start_dir),
                          "-P", "-F", "#{window_id}", config_file=config_file)
        return (result.stdout or "").strip()

    def kill_session(self, name: str):
        self.run("kill-session", "-t", session_target(name))

    def attach(self, name: str):
        """Attach the terminal to a session, replacing this process.

        Inside tmux the current client is switched instead.
        """
        if os.environ.get("TMUX"):
            self.run("switch-client", "-t", session_target(name))
            return
        argv = [self.binary, "attach-session", "-t", session_target(name)]
        logger.debug(f"Exec: {' '.join(argv)}")
        os.execvp(self.binary, argv)

    # Windows

    def list_windows(self, target: str, fmt: str = "#{window_id}") -> List[str]:
        return self._lines("list-windows", "-t", target, "-F", fmt)

    def new_window(self, session: str, name: str, start_dir: Union[str, Path]) -> str:
        result = self.run("new-window", "-d", "-t", pane_target(session), "-n", name,
                          "-c", str(start_dir), "-P", "-F", "#{window_id}")
        return (result.stdout or "").strip()

    def rename_window(self, target: str, name: str):
        self.run("rename-window", "-t", target, name)

    def select_window(self, target: str):
        self.run("select-window", "-t", target)

    def window_size(self, target: str) -> Optional[Tuple[int, int]]:
        output = self.display(target, "#{window_width} #{window_height}")
        try:
            width, height = output.split()
            return int(width), int(height)
        except (AttributeError, ValueError):
            return None

    def resize_window(self, target: str, width: int, height: int):
        self.run("resize-window", "-t", target, "-x", str(width), "-y", str(height))

    def select_layout(self, target: str, layout: str):
        self.run("select-layout", "-t", target, layout)

    # Panes

    def list_panes(self, target: str) -> List[str]:
        """Pane ids of a window, in index order."""
        return self._lines("list-panes", "-t", target, "-F", "#{pane_id}")

    def split_window(self, target: str, horizontal: bool, start_dir: Union[str, Path]) -> str:
        result = self.run("split-window", "-h" if horizontal else "-v", "-t", target,
                          "-c", str(start_dir), "-P", "-F", "#{pane_id}")
        return (result.stdout or "").strip()

    def select_pane(self, target: str):
        self.run("select-pane", "-t", target)

    def display(self, target: str, fmt: str) -> Optional[str]:
        return self.query("display-message", "-p", "-t", target, fmt)

    def send_keys_argv(self, target: str, text: str, enter: bool = True) -> List[List[str]]:
        """Full argv lists that type ``text`` into ``target`` (and press Enter)."""
        commands = []
        if text:
            commands.append([self.binary, "send-keys", "-t", target, "-l", text])
        if enter:
            commands.append([self.binary, "send-keys", "-t", target, "Enter"])
        return commands

    def send_keys(self, target: str, text: str, enter: bool = True):
        for argv in self.send_keys_argv(target, text, enter):
            self.run(*argv[1:])

    # Options

    def set_option(self, target: Optional[str], name: str, value: str,
                   kind: OptionKind = OptionKind.SESSION, global_: bool = False):
        if kind is OptionKind.SERVER:
            self.run("set-option", "-s", name, value)
            return
        command = "set-window-option" if kind is OptionKind.WINDOW else "set-option"
        if global_ or target is None:
            self.run(command, "-g", name, value)
        else:
            self.run(command, "-t", target, name, value)


def wait_for_target(tmux: Tmux, target: str, attempts: int = 20, interval: float = 0.05,
                    sleep: Callable[[float], None] = time.sleep) -> Readiness:
    """Poll until ``target`` resolves to a pane, at most ``attempts`` times."""
    for attempt in range(attempts):
        if tmux.display(target, "#{pane_id}"):
            if attempt:
                logger.debug(f"{target} ready after {attempt + 1} attempts")
            return Readiness.READY
        sleep(interval)

    logger.debug(f"Timed out waiting for {target} after {attempts} attempts")
    return Readiness.TIMED_OUT

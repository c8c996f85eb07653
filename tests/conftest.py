"""Shared test fixtures."""
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from sessionmux.config import Config, set_config
from sessionmux.scheduler import ScheduledDispatch
from sessionmux.tmux import Tmux


@dataclass(eq=False)
class FakePane:
    id: str
    window: "FakeWindow" = field(repr=False)
    cwd: str
    keys: List[str] = field(default_factory=list)

    def submitted(self) -> List[str]:
        """Literal texts that were followed by Enter."""
        lines = []
        for text, following in zip(self.keys, self.keys[1:] + [None]):
            if text != "Enter" and following == "Enter":
                lines.append(text)
        return lines

    def typed(self) -> List[str]:
        return [k for k in self.keys if k != "Enter"]


@dataclass(eq=False)
class FakeWindow:
    id: str
    name: str
    session: "FakeSession" = field(repr=False)
    panes: List[FakePane] = field(default_factory=list)
    options: Dict[str, str] = field(default_factory=dict)
    size: tuple = (80, 24)
    layout: Optional[str] = None
    active_pane: int = 0


@dataclass(eq=False)
class FakeSession:
    name: str
    start_dir: str
    config_file: Optional[str] = None
    windows: List[FakeWindow] = field(default_factory=list)
    options: Dict[str, str] = field(default_factory=dict)
    active_window: int = 0


class FakeTmux(Tmux):
    """Tmux adapter backed by an in-memory server."""

    def __init__(self, version: str = "tmux 3.4", available: bool = True):
        super().__init__("tmux")
        self.version_output = version
        self.available = available
        self.sessions: Dict[str, FakeSession] = {}
        self.windows: Dict[str, FakeWindow] = {}
        self.panes: Dict[str, FakePane] = {}
        self.global_options: Dict[str, str] = {}
        self.server_options: Dict[str, str] = {}
        self.window_size_default = (80, 24)
        self.fail_on = set()
        self.calls: List[List[str]] = []
        self.switched_to: Optional[str] = None
        self._next_window = 0
        self._next_pane = 0

    # Lookup

    def session(self, name: str) -> FakeSession:
        return self.sessions[name]

    def window_by_name(self, session: str, name: str) -> FakeWindow:
        for window in self.sessions[session].windows:
            if window.name == name:
                return window
        raise KeyError(name)

    def commands(self, name: str) -> List[List[str]]:
        return [argv for argv in self.calls if name in argv]

    def _resolve_session(self, target: str) -> Optional[FakeSession]:
        name = target.lstrip("=").split(":")[0]
        return self.sessions.get(name)

    def _resolve_window(self, target: str) -> Optional[FakeWindow]:
        if target.startswith("@"):
            return self.windows.get(target)
        if target.startswith("%"):
            pane = self.panes.get(target)
            return pane.window if pane else None
        session = self._resolve_session(target)
        if session is None or not session.windows:
            return None
        return session.windows[session.active_window]

    def _resolve_pane(self, target: str) -> Optional[FakePane]:
        if target.startswith("%"):
            return self.panes.get(target)
        window = self._resolve_window(target)
        if window is None or not window.panes:
            return None
        return window.panes[window.active_pane]

    # Construction

    def _new_pane(self, window: FakeWindow, cwd: str) -> FakePane:
        pane = FakePane(f"%{self._next_pane}", window, cwd)
        self._next_pane += 1
        self.panes[pane.id] = pane
        return pane

    def _new_window(self, session: FakeSession, name: str, cwd: str) -> FakeWindow:
        window = FakeWindow(f"@{self._next_window}", name, session, size=self.window_size_default)
        self._next_window += 1
        self.windows[window.id] = window
        window.panes.append(self._new_pane(window, cwd))
        session.windows.append(window)
        return window

    def _drop_session(self, session: FakeSession):
        for window in session.windows:
            for pane in window.panes:
                self.panes.pop(pane.id, None)
            self.windows.pop(window.id, None)
        del self.sessions[session.name]

    # Command interpreter

    def _execute(self, argv: List[str]) -> subprocess.CompletedProcess:
        self.calls.append(list(argv))
        args = list(argv[1:])
        config_file = None
        if args[:1] == ["-f"]:
            config_file = args[1]
            args = args[2:]

        if not self.available:
            return subprocess.CompletedProcess(argv, 127, "", "tmux: not found")
        if args[0] in self.fail_on:
            return subprocess.CompletedProcess(argv, 1, "", f"injected failure: {args[0]}")

        handler = getattr(self, "_cmd_" + args[0].lstrip("-").replace("-", "_"))
        try:
            stdout = handler(args[1:], config_file) or ""
        except LookupError as e:
            return subprocess.CompletedProcess(argv, 1, "", f"can't find {e}")
        return subprocess.CompletedProcess(argv, 0, stdout, "")

    @staticmethod
    def _flags(args: List[str], with_value=("-t", "-s", "-c", "-n", "-F", "-x", "-y")):
        flags, rest = {}, []
        i = 0
        while i < len(args):
            arg = args[i]
            if arg in with_value:
                flags[arg] = args[i + 1]
                i += 2
            elif arg.startswith("-") and len(arg) == 2 and arg != "-l":
                flags[arg] = True
                i += 1
            else:
                rest.append(arg)
                i += 1
        return flags, rest

    def _cmd_V(self, args, config_file):
        return self.version_output + "\n"

    def _cmd_has_session(self, args, config_file):
        flags, _ = self._flags(args)
        if self._resolve_session(flags["-t"]) is None:
            raise LookupError(f"session: {flags['-t']}")

    def _cmd_new_session(self, args, config_file):
        flags, _ = self._flags(args)
        name = flags["-s"]
        if name in self.sessions:
            raise LookupError(f"duplicate session: {name}")
        session = FakeSession(name, flags.get("-c", "."), config_file=config_file)
        self.sessions[name] = session
        window = self._new_window(session, "bash", session.start_dir)
        return window.id + "\n"

    def _cmd_kill_session(self, args, config_file):
        flags, _ = self._flags(args)
        session = self._resolve_session(flags["-t"])
        if session is None:
            raise LookupError(f"session: {flags['-t']}")
        self._drop_session(session)

    def _cmd_list_windows(self, args, config_file):
        flags, _ = self._flags(args)
        session = self._resolve_session(flags["-t"])
        if session is None:
            raise LookupError(f"session: {flags['-t']}")
        fmt = flags.get("-F", "#{window_id}")
        return "".join(
            fmt.replace("#{window_id}", w.id).replace("#{window_name}", w.name) + "\n"
            for w in session.windows)

    def _cmd_new_window(self, args, config_file):
        flags, _ = self._flags(args)
        session = self._resolve_session(flags["-t"])
        if session is None:
            raise LookupError(f"session: {flags['-t']}")
        window = self._new_window(session, flags.get("-n", "bash"), flags.get("-c", "."))
        return window.id + "\n"

    def _cmd_rename_window(self, args, config_file):
        flags, rest = self._flags(args)
        window = self._resolve_window(flags["-t"])
        if window is None:
            raise LookupError(f"window: {flags['-t']}")
        window.name = rest[0]

    def _cmd_select_window(self, args, config_file):
        flags, _ = self._flags(args)
        window = self._resolve_window(flags["-t"])
        if window is None:
            raise LookupError(f"window: {flags['-t']}")
        window.session.active_window = window.session.windows.index(window)

    def _cmd_select_pane(self, args, config_file):
        flags, _ = self._flags(args)
        pane = self._resolve_pane(flags["-t"])
        if pane is None:
            raise LookupError(f"pane: {flags['-t']}")
        pane.window.active_pane = pane.window.panes.index(pane)

    def _cmd_display_message(self, args, config_file):
        flags, rest = self._flags(args)
        pane = self._resolve_pane(flags["-t"])
        if pane is None:
            raise LookupError(f"pane: {flags['-t']}")
        window = pane.window
        return (rest[0]
                .replace("#{pane_id}", pane.id)
                .replace("#{window_id}", window.id)
                .replace("#{window_width}", str(window.size[0]))
                .replace("#{window_height}", str(window.size[1]))) + "\n"

    def _cmd_resize_window(self, args, config_file):
        flags, _ = self._flags(args)
        window = self._resolve_window(flags["-t"])
        if window is None:
            raise LookupError(f"window: {flags['-t']}")
        window.size = (int(flags["-x"]), int(flags["-y"]))

    def _cmd_select_layout(self, args, config_file):
        flags, rest = self._flags(args)
        window = self._resolve_window(flags["-t"])
        if window is None:
            raise LookupError(f"window: {flags['-t']}")
        window.layout = rest[0]

    def _cmd_list_panes(self, args, config_file):
        flags, _ = self._flags(args)
        window = self._resolve_window(flags["-t"])
        if window is None:
            raise LookupError(f"window: {flags['-t']}")
        return "".join(f"{pane.id}\n" for pane in window.panes)

    def _cmd_split_window(self, args, config_file):
        flags, _ = self._flags(args)
        target = self._resolve_pane(flags["-t"])
        if target is None:
            raise LookupError(f"pane: {flags['-t']}")
        window = target.window
        pane = self._new_pane(window, flags.get("-c", target.cwd))
        window.panes.insert(window.panes.index(target) + 1, pane)
        return pane.id + "\n"

    def _cmd_send_keys(self, args, config_file):
        target = args[args.index("-t") + 1]
        pane = self._resolve_pane(target)
        if pane is None:
            raise LookupError(f"pane: {target}")
        if "-l" in args:
            pane.keys.append(args[args.index("-l") + 1])
        else:
            pane.keys.append(args[-1])

    def _set(self, args, window_scope: bool):
        flags, rest = self._flags(args, with_value=("-t",))
        name, value = rest
        if flags.get("-s"):
            self.server_options[name] = value
        elif flags.get("-g"):
            self.global_options[name] = value
        elif window_scope or flags["-t"].startswith("@"):
            window = self._resolve_window(flags["-t"])
            if window is None:
                raise LookupError(f"window: {flags['-t']}")
            window.options[name] = value
        else:
            session = self._resolve_session(flags["-t"])
            if session is None:
                raise LookupError(f"session: {flags['-t']}")
            session.options[name] = value

    def _cmd_set_option(self, args, config_file):
        self._set(args, window_scope=False)

    def _cmd_set_window_option(self, args, config_file):
        self._set(args, window_scope=True)

    def _cmd_switch_client(self, args, config_file):
        self.switched_to = args[args.index("-t") + 1]


class ManualDispatch(ScheduledDispatch):
    def __init__(self, scheduler: "ManualScheduler", due: float, commands: List[List[str]]):
        self.scheduler = scheduler
        self.due = due
        self.commands = commands
        self.result: Optional[bool] = None
        self.cancelled = False

    def done(self) -> bool:
        return self.cancelled or self.result is not None

    def succeeded(self) -> Optional[bool]:
        if self.cancelled:
            return False
        return self.result

    def cancel(self) -> bool:
        if self.done():
            return False
        self.cancelled = True
        return True


class ManualScheduler:
    """Scheduler driven by a fake clock; dispatches run on ``advance``."""

    def __init__(self, tmux: Tmux):
        self.tmux = tmux
        self.now = 0.0
        self.dispatches: List[ManualDispatch] = []

    def schedule(self, delay: float, commands: List[List[str]]) -> ManualDispatch:
        dispatch = ManualDispatch(self, self.now + delay, commands)
        self.dispatches.append(dispatch)
        return dispatch

    def advance(self, seconds: float):
        self.now += seconds
        for dispatch in self.dispatches:
            if dispatch.done() or dispatch.due > self.now:
                continue
            result = True
            for argv in dispatch.commands:
                if self.tmux.run(*argv[1:], check=False).returncode != 0:
                    result = False
                    break
            dispatch.result = result


DEMO_CONFIG = """\
name: demo
color: blue

subsessions:
  api:
    dir: ./api
    command: npm run dev
    color: green

windows:
  - name: main
    dir: .
    panes:
      - type: command
        cmd: htop
        execute: true
      - type: subsession
        subsession: api
"""


@pytest.fixture
def fake_tmux():
    return FakeTmux()


@pytest.fixture
def manual_scheduler(fake_tmux):
    return ManualScheduler(fake_tmux)


@pytest.fixture
def settings(tmp_path):
    """Settings pointing every path into tmp_path, with instant polling."""
    return Config(
        readiness={"attempts": 3, "interval": 0},
        subsession={"restart_grace": 0, "history_file": str(tmp_path / "history")},
        paths={
            "runtime_dir": str(tmp_path / "run"),
            "bin_dir": str(tmp_path / "bin"),
            "sessions_dir": str(tmp_path / "sessions"),
        },
    )


@pytest.fixture
def use_settings(settings):
    """Install ``settings`` as the global settings for the test."""
    set_config(settings)
    yield settings
    set_config(None)


@pytest.fixture
def write_config(tmp_path):
    """Write a session file into tmp_path, creating ``dirs`` next to it."""
    def write(text: str, name: str = "demo.yaml", dirs=()) -> Path:
        for directory in dirs:
            (tmp_path / directory).mkdir(parents=True, exist_ok=True)
        path = tmp_path / name
        path.write_text(text)
        return path
    return write


@pytest.fixture
def demo_config(write_config):
    return write_config(DEMO_CONFIG, dirs=("api",))

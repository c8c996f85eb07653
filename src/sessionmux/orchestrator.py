"""Build and manage a complete tmux workspace from a session configuration.

``Orchestrator.start`` walks the build through a fixed sequence of states::

    ABSENT -> CREATING -> SUBSESSIONS_STARTED -> WINDOWS_BUILT
           -> SUBSESSIONS_ATTACHED -> READY

Configuration problems are raised before anything touches tmux. Once the
session exists, a failing tmux call is logged, recorded as a discrepancy on
the :class:`BuildReport` and skipped, so a partially broken workspace still
comes up.
"""
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional

from .config import Config, get_config
from .exceptions import SessionNotRunningError, SubsessionError, TmuxCommandError
from .layout import plan_layout
from .models import CommandPane, SessionConfig, Window
from .options import Scope, resolve
from .runtime import RuntimeFiles, get_runtime_dir
from .scheduler import ScheduledDispatch
from .subsession import HIST_SKIP, RESURRECT_EXCLUDE, SubsessionManager, append_history
from .tmux import Readiness, Tmux, session_target, wait_for_target

logger = logging.getLogger(__name__)

MIN_WIDTH, MIN_HEIGHT = 20, 10
FALLBACK_SIZE = (80, 24)


class SessionState(Enum):
    ABSENT = "absent"
    CREATING = "creating"
    SUBSESSIONS_STARTED = "subsessions_started"
    WINDOWS_BUILT = "windows_built"
    SUBSESSIONS_ATTACHED = "subsessions_attached"
    READY = "ready"
    STOPPED = "stopped"
    KILLED = "killed"


@dataclass
class BuildReport:
    """Outcome of a build: final state, what was created and what went wrong."""
    session: str
    state: SessionState = SessionState.ABSENT
    created: bool = False
    windows: Dict[str, str] = field(default_factory=dict)
    panes: Dict[str, List[str]] = field(default_factory=dict)
    discrepancies: List[str] = field(default_factory=list)
    dispatches: List[ScheduledDispatch] = field(default_factory=list)

    def note(self, message: str):
        logger.warning(message)
        self.discrepancies.append(message)

    @property
    def ok(self) -> bool:
        return not self.discrepancies


@dataclass
class StatusReport:
    session: str
    running: bool
    windows: List[str] = field(default_factory=list)
    subsessions: Dict[str, bool] = field(default_factory=dict)


class Orchestrator:
    """Drives one session configuration against a tmux server."""

    def __init__(self, tmux: Tmux, config: SessionConfig, settings: Optional[Config] = None,
                 scheduler=None, runtime: Optional[RuntimeFiles] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.tmux = tmux
        self.config = config
        self.settings = settings or get_config()
        self.runtime = runtime or RuntimeFiles(
            config.name, get_runtime_dir(self.settings.paths.runtime_dir))
        self.sleep = sleep
        self.subsessions = SubsessionManager(
            tmux, config, scheduler=scheduler, settings=self.settings,
            status_script=self.runtime.status_script, tmux_conf=self.runtime.tmux_conf,
            sleep=sleep)
        self.state = SessionState.ABSENT

    @property
    def name(self) -> str:
        return self.config.name

    def _transition(self, state: SessionState, report: Optional[BuildReport] = None):
        logger.debug(f"{self.name}: {self.state.value} -> {state.value}")
        self.state = state
        if report is not None:
            report.state = state

    def _wait(self, target: str) -> Readiness:
        readiness = self.settings.readiness
        return wait_for_target(self.tmux, target, attempts=readiness.attempts,
                               interval=readiness.interval, sleep=self.sleep)

    # Build

    def start(self) -> BuildReport:
        """Build the workspace unless the session is already running."""
        report = BuildReport(self.name)
        if self.tmux.has_session(self.name):
            logger.info(f"Session {self.name} already exists")
            self._transition(SessionState.READY, report)
            return report

        self._transition(SessionState.CREATING, report)
        self.runtime.write(self.config.timezone, self.config.show_utc, len(self.config.windows))

        first = self.config.windows[0]
        first_dir = self._window_dir(first, report)
        first_window = self.tmux.new_session(
            self.name, first_dir, config_file=self.runtime.tmux_conf)
        report.created = True
        logger.info(f"Created session {self.name}")

        self._exclude_from_resurrect()
        failures = self._apply_session_options()
        if failures:
            report.note(f"{failures} option(s) could not be set on session '{self.name}'")

        self._start_subsessions(report)
        self._transition(SessionState.SUBSESSIONS_STARTED, report)

        self._build_window(first, report, existing=first_window, directory=first_dir)
        for window in self.config.windows[1:]:
            self._build_window(window, report)
        self._transition(SessionState.WINDOWS_BUILT, report)

        for window_id in report.windows.values():
            if self._wait(window_id) is Readiness.TIMED_OUT:
                logger.warning(f"Window {window_id} not ready, continuing")
        for window in self.config.windows:
            self._attach_subsession_panes(window, report)
        self._transition(SessionState.SUBSESSIONS_ATTACHED, report)

        self._focus(first, report)
        self._transition(SessionState.READY, report)
        logger.info(f"Session {self.name} ready ({len(report.discrepancies)} discrepancies)")
        return report

    def _window_dir(self, window: Window, report: BuildReport) -> Path:
        directory = self.config.resolve_dir(window.dir)
        if not directory.is_dir():
            report.note(f"Directory for window '{window.name}' does not exist: {directory}")
            return self.config.base_dir
        return directory

    def _exclude_from_resurrect(self):
        try:
            self.tmux.set_option(session_target(self.name), RESURRECT_EXCLUDE, "on")
        except TmuxCommandError as e:
            logger.warning(f"Could not mark {self.name} as excluded from resurrect: {e}")

    def _apply_session_options(self) -> int:
        failures = resolve(Scope.GLOBAL, self.config.global_options).apply(self.tmux)
        effective = resolve(Scope.SESSION, self.config.session_options,
                            inherited_color=self.config.color,
                            status_script=str(self.runtime.status_script))
        return failures + effective.apply(self.tmux, session_target(self.name))

    def _start_subsessions(self, report: BuildReport):
        for subsession in self.config.subsessions.values():
            try:
                dispatch = self.subsessions.start(subsession)
            except SubsessionError as e:
                report.note(str(e))
                continue
            if dispatch is not None:
                report.dispatches.append(dispatch)
            failures = self.subsessions.apply_style(subsession.name)
            if failures:
                report.note(f"{failures} option(s) could not be set on subsession '{subsession.name}'")

    def _build_window(self, window: Window, report: BuildReport,
                      existing: Optional[str] = None, directory: Optional[Path] = None):
        if directory is None:
            directory = self._window_dir(window, report)
        try:
            if existing:
                self.tmux.rename_window(existing, window.name)
                window_id = existing
            else:
                window_id = self.tmux.new_window(self.name, window.name, directory)
        except TmuxCommandError as e:
            report.note(f"Failed to create window '{window.name}': {e}")
            return
        report.windows[window.name] = window_id

        failures = resolve(Scope.WINDOW, window.options, inherited_color=window.color).apply(
            self.tmux, window_id)
        if failures:
            report.note(f"{failures} option(s) could not be set on window '{window.name}'")

        panes = self._create_panes(window, window_id, directory, report)
        report.panes[window.name] = panes

        for index, pane in enumerate(window.panes):
            if isinstance(pane, CommandPane) and index < len(panes):
                self._populate(window, index, pane, panes[index], report)

    def _ensure_size(self, window_id: str):
        size = self.tmux.window_size(window_id)
        if size is None or (size[0] >= MIN_WIDTH and size[1] >= MIN_HEIGHT):
            return
        try:
            self.tmux.resize_window(window_id, *FALLBACK_SIZE)
        except TmuxCommandError as e:
            logger.warning(f"Could not resize window {window_id}: {e}")

    def _create_panes(self, window: Window, window_id: str, directory: Path,
                      report: BuildReport) -> List[str]:
        plan = plan_layout(len(window.panes))
        if plan.splits:
            self._ensure_size(window_id)

        panes = self.tmux.list_panes(window_id)
        for split in plan.splits:
            if split.pane >= len(panes):
                break
            try:
                self.tmux.split_window(panes[split.pane], split.horizontal, directory)
                if split.retile:
                    self.tmux.select_layout(window_id, "tiled")
            except TmuxCommandError as e:
                logger.warning(f"Split failed in window '{window.name}': {e}")
                break
            panes = self.tmux.list_panes(window_id)

        if plan.final_layout:
            try:
                self.tmux.select_layout(window_id, plan.final_layout)
            except TmuxCommandError as e:
                logger.warning(f"Could not apply {plan.final_layout} layout to '{window.name}': {e}")

        panes = self.tmux.list_panes(window_id)
        if len(panes) != plan.pane_count:
            report.note(f"Window '{window.name}': requested {plan.pane_count} panes, "
                        f"created {len(panes)}")
        return panes

    def _populate(self, window: Window, index: int, pane: CommandPane, pane_id: str,
                  report: BuildReport):
        if not pane.cmd:
            return
        text = HIST_SKIP + pane.cmd if pane.execute else pane.cmd
        try:
            self.tmux.send_keys(pane_id, text, enter=pane.execute)
        except TmuxCommandError as e:
            report.note(f"Window '{window.name}' pane {index}: could not send command: {e}")
            return
        if pane.execute and pane.history:
            append_history(self.settings.subsession.history_file, pane.cmd)

    def _attach_subsession_panes(self, window: Window, report: BuildReport):
        panes = report.panes.get(window.name)
        if panes is None:
            return
        for index, pane in window.subsession_panes():
            if index >= len(panes):
                report.note(f"Window '{window.name}' pane {index}: no pane to attach "
                            f"subsession '{pane.subsession}'")
                continue
            try:
                dispatch = self.subsessions.ensure(pane.subsession)
                if dispatch is not None:
                    report.dispatches.append(dispatch)
                self._wait(panes[index])
                self.subsessions.attach_pane(panes[index], pane.subsession, pane.cmd or None)
            except (SubsessionError, TmuxCommandError) as e:
                report.note(f"Window '{window.name}' pane {index}: {e}")

    def _focus(self, window: Window, report: BuildReport):
        window_id = report.windows.get(window.name)
        panes = report.panes.get(window.name)
        if not window_id:
            return
        try:
            self.tmux.select_window(window_id)
            if panes:
                self.tmux.select_pane(panes[0])
        except TmuxCommandError as e:
            report.note(f"Could not focus window '{window.name}': {e}")

    # Auxiliary operations

    def status(self) -> StatusReport:
        running = self.tmux.has_session(self.name)
        windows = []
        if running:
            windows = self.tmux.list_windows(session_target(self.name), "#{window_name}")
        return StatusReport(
            session=self.name,
            running=running,
            windows=windows,
            subsessions={name: self.subsessions.exists(name) for name in self.config.subsessions},
        )

    def stop(self) -> bool:
        """Kill the top-level session; subsessions keep running."""
        running = self.tmux.has_session(self.name)
        if running:
            self.tmux.kill_session(self.name)
            logger.info(f"Stopped session {self.name}")
        else:
            logger.info(f"Session {self.name} is not running")

        alive = [name for name in self.config.subsessions if self.subsessions.exists(name)]
        if alive:
            logger.info(f"Subsessions still running: {', '.join(alive)}")

        self.runtime.remove()
        self.state = SessionState.STOPPED
        return running

    def live_sessions(self) -> List[str]:
        """Subsessions, then the top-level session, that currently exist."""
        live = [name for name in self.config.subsessions if self.subsessions.exists(name)]
        if self.tmux.has_session(self.name):
            live.append(self.name)
        return live

    def kill(self, confirm: Callable[[List[str]], bool]) -> bool:
        """Kill every live session of the workspace after ``confirm`` agrees.

        ``confirm`` receives the live session names. Returns False when there
        was nothing to kill or the confirmation was declined.
        """
        live = self.live_sessions()
        if not live:
            logger.info(f"No sessions found for {self.name}")
            return False
        if not confirm(live):
            logger.info("Kill cancelled")
            return False

        for name in live:
            if name == self.name:
                continue
            self.subsessions.stop(name)
        if self.tmux.has_session(self.name):
            self.tmux.kill_session(self.name)
            logger.info(f"Killed session {self.name}")

        self.runtime.remove()
        self.state = SessionState.KILLED
        return True

    def restart(self, target: Optional[str] = None) -> Optional[BuildReport]:
        """Restart a subsession, or stop and rebuild the whole workspace."""
        if target and target != self.name:
            self.subsessions.restart(target)
            return None
        if self.stop():
            self.sleep(self.settings.subsession.restart_grace)
        return self.start()

    def refresh(self, target: Optional[str] = None) -> int:
        """Re-apply computed options. Returns the number of failed setters."""
        if target and target != self.name:
            return self.subsessions.refresh(target)
        if not self.tmux.has_session(self.name):
            raise SessionNotRunningError(f"Session '{self.name}' is not running")

        self.runtime.write(self.config.timezone, self.config.show_utc, len(self.config.windows))
        failures = self._apply_session_options()

        windows = {}
        for line in self.tmux.list_windows(session_target(self.name), "#{window_id} #{window_name}"):
            window_id, _, window_name = line.partition(" ")
            windows[window_name] = window_id
        for window in self.config.windows:
            window_id = windows.get(window.name)
            if window_id is None:
                logger.warning(f"Window '{window.name}' not found in session {self.name}")
                continue
            failures += resolve(Scope.WINDOW, window.options,
                                inherited_color=window.color).apply(self.tmux, window_id)

        for name in self.config.subsessions:
            failures += self.subsessions.apply_style(name)
        logger.info(f"Refreshed {self.name} ({failures} failures)")
        return failures

    def attach(self, target: Optional[str] = None):
        """Attach to the session, or to a subsession after ensuring it runs."""
        if target and target != self.name:
            self.subsessions.ensure(target)
            self.tmux.attach(target)
            return
        if not self.tmux.has_session(self.name):
            raise SessionNotRunningError(f"Session '{self.name}' is not running")
        self.tmux.attach(self.name)

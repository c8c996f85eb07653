"""Subsession lifecycle: start, stop, restart, style and attach."""
import logging
import shlex
import time
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from .config import Config, get_config
from .exceptions import SubsessionError, TmuxCommandError, UnknownTargetError
from .models import SessionConfig, Subsession
from .options import Scope, resolve, subsession_color
from .scheduler import ProcessScheduler, ScheduledDispatch
from .tmux import Tmux, pane_target, session_target

logger = logging.getLogger(__name__)

# Leading space keeps the line out of shell history (HISTCONTROL=ignorespace).
HIST_SKIP = " "
RESURRECT_EXCLUDE = "@resurrect-exclude"


def export_line(env: List[Tuple[str, str]]) -> str:
    if not env:
        return ""
    return "export " + " ".join(f"{key}={shlex.quote(value)}" for key, value in env)


def append_history(history_file: str, command: str):
    """Append a command to the shell history file."""
    path = Path(history_file).expanduser()
    try:
        with open(path, "a") as f:
            f.write(command + "\n")
    except OSError as e:
        logger.warning(f"Could not append to {path}: {e}")


class SubsessionManager:
    """Manages the subsessions declared by one configuration."""

    def __init__(self, tmux: Tmux, config: SessionConfig, scheduler=None,
                 settings: Optional[Config] = None, status_script: Optional[Path] = None,
                 tmux_conf: Optional[Path] = None, sleep: Callable[[float], None] = time.sleep):
        self.tmux = tmux
        self.config = config
        self.scheduler = scheduler or ProcessScheduler()
        self.settings = settings or get_config()
        self.status_script = status_script
        self.tmux_conf = tmux_conf
        self.sleep = sleep

    def get(self, name: str) -> Subsession:
        subsession = self.config.get_subsession(name)
        if subsession is None:
            raise UnknownTargetError(f"Subsession '{name}' is not defined in session '{self.config.name}'")
        return subsession

    def exists(self, name: str) -> bool:
        return self.tmux.has_session(name)

    def dispatch_commands(self, subsession: Subsession) -> List[List[str]]:
        """tmux argv lists that deliver the subsession's env and command."""
        target = pane_target(subsession.name)
        exports = export_line(subsession.env)

        if not subsession.has_command:
            if exports:
                return self.tmux.send_keys_argv(target, HIST_SKIP + exports)
            return []

        if subsession.execute:
            prefix = f"{exports}; " if exports else ""
            return self.tmux.send_keys_argv(target, f"{HIST_SKIP}{prefix}{subsession.command}")

        # Typed but not submitted; env is still exported first.
        commands = []
        if exports:
            commands.extend(self.tmux.send_keys_argv(target, HIST_SKIP + exports))
        commands.extend(self.tmux.send_keys_argv(target, subsession.command, enter=False))
        return commands

    def start(self, subsession: Subsession) -> Optional[ScheduledDispatch]:
        """Create the subsession and send its command.

        Does nothing if the session already runs. With a delay the command is
        handed to the scheduler and its handle returned without waiting.

        Raises:
            SubsessionError: the directory is missing or tmux refused to
                create the session.
        """
        name = subsession.name
        if self.exists(name):
            logger.debug(f"Subsession {name} already running")
            return None

        directory = self.config.resolve_dir(subsession.dir)
        if not directory.is_dir():
            raise SubsessionError(f"Directory does not exist for subsession '{name}': {directory}")

        config_file = self.tmux_conf if self.tmux_conf and self.tmux_conf.exists() else None
        try:
            self.tmux.new_session(name, directory, config_file=config_file)
        except TmuxCommandError as e:
            raise SubsessionError(f"Failed to create subsession '{name}': {e}") from e

        self._exclude_from_resurrect(name)

        dispatch = None
        commands = self.dispatch_commands(subsession)
        if commands and subsession.delay > 0:
            dispatch = self.scheduler.schedule(subsession.delay, commands)
        else:
            for argv in commands:
                try:
                    self.tmux.run(*argv[1:])
                except TmuxCommandError as e:
                    logger.warning(f"Failed to send command to subsession {name}: {e}")
                    break

        if subsession.history and subsession.execute and subsession.has_command:
            append_history(self.settings.subsession.history_file, subsession.command)

        logger.info(f"Started subsession {name} in {directory}")
        return dispatch

    def stop(self, name: str) -> bool:
        """Kill the subsession. Returns False if it was not running."""
        if not self.exists(name):
            logger.info(f"Subsession '{name}' is not running")
            return False
        self.tmux.kill_session(name)
        logger.info(f"Stopped subsession: {name}")
        return True

    def ensure(self, name: str) -> Optional[ScheduledDispatch]:
        """Start and style the subsession unless it is already running."""
        subsession = self.get(name)
        if self.exists(name):
            return None
        if not subsession.dir:
            raise SubsessionError(f"No directory configured for subsession '{name}'")
        dispatch = self.start(subsession)
        self.apply_style(name)
        return dispatch

    def restart(self, name: str) -> Optional[ScheduledDispatch]:
        subsession = self.get(name)
        if self.stop(name):
            self.sleep(self.settings.subsession.restart_grace)
        dispatch = self.start(subsession)
        self.apply_style(name)
        return dispatch

    def apply_style(self, name: str) -> int:
        """Apply color and option overlay. Returns the number of failed setters."""
        if not self.exists(name):
            return 0
        subsession = self.get(name)
        effective = resolve(
            Scope.SUBSESSION,
            subsession.options,
            inherited_color=subsession_color(self.config, name),
            status_script=str(self.status_script) if self.status_script else None,
        )
        return effective.apply(self.tmux, session_target(name))

    def refresh(self, name: str) -> int:
        self.get(name)
        if not self.exists(name):
            raise SubsessionError(f"Subsession '{name}' is not running")
        return self.apply_style(name)

    def attach_pane(self, pane: str, name: str, command: Optional[str] = None):
        """Show the subsession inside ``pane`` as a nested client.

        Raises:
            SubsessionError: the subsession is not running.
        """
        if not self.exists(name):
            raise SubsessionError(f"Subsession '{name}' does not exist")

        if command:
            self.tmux.send_keys(pane_target(name), HIST_SKIP + command)

        attach = f"TMUX= {self.tmux.binary} attach-session -t {shlex.quote(session_target(name))}"
        self.tmux.send_keys(pane, f"{HIST_SKIP}{attach} || exec $SHELL")
        logger.debug(f"Pane {pane} attached to subsession {name}")

    def _exclude_from_resurrect(self, name: str):
        try:
            self.tmux.set_option(session_target(name), RESURRECT_EXCLUDE, "on")
        except TmuxCommandError as e:
            logger.warning(f"Could not mark {name} as excluded from resurrect: {e}")


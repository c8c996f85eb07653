"""Delayed command dispatch.

A subsession with a ``delay`` gets its command typed some seconds after the
session is created. The caller does not wait for that: it gets back a
:class:`ScheduledDispatch` handle it may inspect or cancel, and otherwise
carries on (possibly replacing itself with ``tmux attach``). The production
scheduler therefore runs the dispatch in a detached process rather than a
thread of this one.
"""
import logging
import shlex
import subprocess
from abc import ABC, abstractmethod
from typing import List, Optional

from . import proc
from .exceptions import DispatchError

logger = logging.getLogger(__name__)


class ScheduledDispatch(ABC):
    """Handle to a pending command dispatch."""

    @abstractmethod
    def done(self) -> bool:
        ...

    @abstractmethod
    def succeeded(self) -> Optional[bool]:
        """True/False once done, None while pending."""

    @abstractmethod
    def cancel(self) -> bool:
        """Cancel if still pending. Returns True if it was cancelled."""


class ProcessDispatch(ScheduledDispatch):
    """Dispatch running as a detached ``sh -c 'sleep N && tmux ...'``."""

    def __init__(self, process: subprocess.Popen, delay: float, commands: List[List[str]]):
        self.process = process
        self.delay = delay
        self.commands = commands
        self._cancelled = False

    def done(self) -> bool:
        return self._cancelled or self.process.poll() is not None

    def succeeded(self) -> Optional[bool]:
        if self._cancelled:
            return False
        returncode = self.process.poll()
        if returncode is None:
            return None
        return returncode == 0

    def cancel(self) -> bool:
        if self.done():
            return False
        try:
            self.process.terminate()
        except ProcessLookupError:
            return False
        self._cancelled = True
        return True


class ProcessScheduler:
    """Runs each dispatch in its own detached shell process."""

    def __init__(self, shell: str = "sh"):
        self.shell = shell

    def schedule(self, delay: float, commands: List[List[str]]) -> ProcessDispatch:
        script = " && ".join([f"sleep {delay:g}"] + [shlex.join(argv) for argv in commands])
        logger.debug(f"Scheduling in {delay:g}s: {script}")
        try:
            process = proc.spawn_detached([self.shell, "-c", script])
        except OSError as e:
            raise DispatchError(f"Cannot start {self.shell} for delayed dispatch: {e}") from e
        return ProcessDispatch(process, delay, commands)

"""Exception hierarchy for sessionmux."""
from pathlib import Path
from typing import List, Optional, Union


class SessionmuxError(Exception):
    """Base class for all sessionmux errors."""


class ConfigError(SessionmuxError):
    """The session configuration is missing or invalid."""


class ConfigNotFoundError(ConfigError):
    """No configuration file could be located."""


class ParseError(ConfigError):
    """A line of the configuration file could not be parsed."""

    def __init__(self, message: str, source: Optional[Union[str, Path]] = None,
                 line_number: Optional[int] = None, line: Optional[str] = None):
        self.message = message
        self.source = str(source) if source else None
        self.line_number = line_number
        self.line = line

        location = self.source or "<text>"
        if line_number is not None:
            location = f"{location}:{line_number}"
        detail = f"{location}: {message}"
        if line is not None:
            detail = f"{detail}: {line.strip()!r}"
        super().__init__(detail)


class UnknownOptionError(ConfigError):
    """An option overlay names a tmux option that is not registered."""

    def __init__(self, option: str, scope: str):
        self.option = option
        self.scope = scope
        super().__init__(f"Unknown tmux option '{option}' in {scope} options")


class TmuxEnvironmentError(SessionmuxError):
    """tmux is not installed or is too old."""


class TmuxCommandError(SessionmuxError):
    """A single tmux command failed against the live server."""

    def __init__(self, argv: List[str], returncode: int, stderr: str = ""):
        self.argv = argv
        self.returncode = returncode
        self.stderr = stderr.strip()
        message = f"'{' '.join(argv)}' exited with {returncode}"
        if self.stderr:
            message = f"{message}: {self.stderr}"
        super().__init__(message)


class SubsessionError(SessionmuxError):
    """A subsession could not be started, found or attached."""


class UnknownTargetError(SessionmuxError):
    """A restart/refresh/attach target is not declared in the configuration."""


class SessionNotRunningError(SessionmuxError):
    """The operation needs the top-level session to be running."""


class DispatchError(SubsessionError):
    """A delayed command could not be handed to the scheduler."""


class RuntimeFilesError(SessionmuxError):
    """The generated runtime files could not be written or removed."""


class InstallError(SessionmuxError):
    """A launcher wrapper could not be written or removed."""

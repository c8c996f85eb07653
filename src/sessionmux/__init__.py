"""Declarative tmux workspaces with nested subsessions."""
__version__ = "0.1.0"

from .exceptions import (
    ConfigError,
    ConfigNotFoundError,
    ParseError,
    SessionmuxError,
    SessionNotRunningError,
    SubsessionError,
    TmuxCommandError,
    TmuxEnvironmentError,
    UnknownOptionError,
    UnknownTargetError,
)
from .models import SessionConfig
from .orchestrator import BuildReport, Orchestrator, SessionState
from .parser import parse_file, parse_text
from .tmux import Tmux
from .workspace import find_config, load_workspace, validate

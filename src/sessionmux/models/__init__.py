"""Configuration models."""
from .pane import CommandPane, Pane, PANE_TYPES, SubsessionPane
from .session import DEFAULT_TIMEZONE, SessionConfig
from .subsession import Subsession
from .window import Window

__all__ = [
    "CommandPane",
    "DEFAULT_TIMEZONE",
    "Pane",
    "PANE_TYPES",
    "SessionConfig",
    "Subsession",
    "SubsessionPane",
    "Window",
]

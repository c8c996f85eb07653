"""tmux option registry and display option cascade.

Every option a configuration may set is registered with the kind of tmux
setter it needs. Effective options for a scope are resolved from three
layers, highest precedence first:

1. the scope's explicit option overlay,
2. the scope's inherited ``color``, expanded into a fixed set of options,
3. built-in defaults for the scope.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Dict, Iterable, Optional

from .exceptions import TmuxCommandError, UnknownOptionError

if TYPE_CHECKING:
    from .models import SessionConfig
    from .tmux import Tmux

logger = logging.getLogger(__name__)


class OptionKind(Enum):
    """Which tmux setter an option needs."""
    SERVER = "server"
    SESSION = "session"
    WINDOW = "window"


class Scope(Enum):
    """Where an option overlay is declared."""
    GLOBAL = "global"
    SESSION = "session"
    WINDOW = "window"
    SUBSESSION = "subsession"


class OptionRegistry:
    """Mapping of tmux option name to :class:`OptionKind`."""

    def __init__(self):
        self._kinds: Dict[str, OptionKind] = {}

    def register(self, name: str, kind: OptionKind):
        if not isinstance(kind, OptionKind):
            raise TypeError(f"Option kind must be an OptionKind, got {kind!r}")
        if not name or name.startswith("@") or " " in name:
            raise ValueError(f"Invalid tmux option name: {name!r}")
        existing = self._kinds.get(name)
        if existing is not None and existing is not kind:
            raise ValueError(f"Option '{name}' already registered as {existing.value}")
        self._kinds[name] = kind

    def register_all(self, names: Iterable[str], kind: OptionKind):
        for name in names:
            self.register(name, kind)

    def __contains__(self, name: str) -> bool:
        return name.startswith("@") or name in self._kinds

    def kind_for(self, name: str, scope: Scope) -> Optional[OptionKind]:
        """Return the setter kind for ``name`` in ``scope``, or None if unknown."""
        if name.startswith("@"):
            # User options live wherever they are set.
            return OptionKind.WINDOW if scope is Scope.WINDOW else OptionKind.SESSION
        return self._kinds.get(name)

    def check(self, overlay: Dict[str, str], scope: Scope, owner: str = ""):
        """Raise :class:`UnknownOptionError` for options unusable in ``scope``."""
        label = f"{scope.value} '{owner}'" if owner else scope.value
        for name in overlay:
            kind = self.kind_for(name, scope)
            if kind is None:
                raise UnknownOptionError(name, label)
            if scope is Scope.WINDOW and kind is not OptionKind.WINDOW:
                raise UnknownOptionError(name, f"{label} (not a window option)")


SERVER_OPTIONS = (
    "buffer-limit", "command-alias", "copy-command", "default-terminal",
    "escape-time", "exit-empty", "exit-unattached", "extended-keys",
    "focus-events", "history-file", "message-limit", "set-clipboard",
    "terminal-features", "terminal-overrides",
)

SESSION_OPTIONS = (
    "activity-action", "assume-paste-time", "base-index", "bell-action",
    "default-command", "default-shell", "default-size", "destroy-unattached",
    "detach-on-destroy", "display-panes-active-colour", "display-panes-colour",
    "display-panes-time", "display-time", "history-limit", "key-table",
    "lock-after-time", "lock-command", "message-command-style", "message-style",
    "mouse", "prefix", "prefix2", "renumber-windows", "repeat-time",
    "set-titles", "set-titles-string", "silence-action", "status",
    "status-bg", "status-fg", "status-format", "status-interval",
    "status-justify", "status-keys", "status-left", "status-left-length",
    "status-left-style", "status-position", "status-right",
    "status-right-length", "status-right-style", "status-style",
    "update-environment", "visual-activity", "visual-bell", "visual-silence",
    "word-separators",
)

WINDOW_OPTIONS = (
    "aggressive-resize", "allow-passthrough", "allow-rename", "alternate-screen",
    "automatic-rename", "automatic-rename-format", "clock-mode-colour",
    "clock-mode-style", "main-pane-height", "main-pane-width", "mode-keys",
    "mode-style", "monitor-activity", "monitor-bell", "monitor-silence",
    "other-pane-height", "other-pane-width", "pane-active-border-style",
    "pane-base-index", "pane-border-format", "pane-border-lines",
    "pane-border-status", "pane-border-style", "remain-on-exit",
    "synchronize-panes", "window-active-style", "window-size", "window-style",
    "window-status-activity-style", "window-status-bell-style",
    "window-status-current-format", "window-status-current-style",
    "window-status-format", "window-status-last-style",
    "window-status-separator", "window-status-style", "wrap-search",
)

REGISTRY = OptionRegistry()
REGISTRY.register_all(SERVER_OPTIONS, OptionKind.SERVER)
REGISTRY.register_all(SESSION_OPTIONS, OptionKind.SESSION)
REGISTRY.register_all(WINDOW_OPTIONS, OptionKind.WINDOW)

SCOPE_DEFAULTS: Dict[Scope, Dict[str, str]] = {
    Scope.GLOBAL: {},
    Scope.SESSION: {},
    Scope.WINDOW: {},
    Scope.SUBSESSION: {"status-justify": "left"},
}


def color_options(scope: Scope, color: str, status_script: Optional[str] = None) -> Dict[str, str]:
    """Expand a single color into the display options it stands for."""
    if scope is Scope.WINDOW:
        return {
            "window-status-current-style": f"fg=black,bg={color},bold",
            "window-status-style": f"fg={color},bg=default",
        }
    if scope is Scope.GLOBAL:
        return {}

    clock = f"#({status_script})" if status_script else "%H:%M"
    options = {
        "status-style": f"fg=white,bg={color}",
        "status-left": f"#[fg=white,bg={color},bold]  #S  #[default]   ",
        "status-right": f"#[fg=white,bg={color}] {clock} #[default]",
    }
    if scope is Scope.SESSION:
        options["status-justify"] = "centre"
    return options


@dataclass
class EffectiveOptions:
    """Resolved option values for one scope, in the order they are applied."""
    scope: Scope
    values: Dict[str, str] = field(default_factory=dict)

    def apply(self, tmux: "Tmux", target: Optional[str] = None,
              registry: OptionRegistry = REGISTRY) -> int:
        """Set every option on ``target``. Returns the number of failed setters."""
        failures = 0
        for name, value in self.values.items():
            kind = registry.kind_for(name, self.scope)
            if kind is None:
                kind = OptionKind.WINDOW if self.scope is Scope.WINDOW else OptionKind.SESSION
                logger.warning(f"Passing through unregistered tmux option '{name}'")

            if kind is OptionKind.WINDOW and self.scope in (Scope.SESSION, Scope.SUBSESSION):
                targets = tmux.list_windows(target) if target else []
            else:
                targets = [target]

            for window_target in targets:
                try:
                    tmux.set_option(window_target, name, value, kind=kind,
                                    global_=self.scope is Scope.GLOBAL)
                except TmuxCommandError as e:
                    failures += 1
                    logger.warning(f"Failed to set {name} on {window_target or 'global'}: {e}")
        return failures


def resolve(scope: Scope, overlay: Optional[Dict[str, str]] = None,
            inherited_color: Optional[str] = None,
            status_script: Optional[str] = None) -> EffectiveOptions:
    """Compute the effective options for a scope."""
    values = dict(SCOPE_DEFAULTS[scope])
    if inherited_color:
        values.update(color_options(scope, inherited_color, status_script))
    if overlay:
        values.update(overlay)
    return EffectiveOptions(scope=scope, values=values)


def subsession_color(config: "SessionConfig", name: str) -> Optional[str]:
    """Color a subsession is shown with.

    The subsession's own color wins; otherwise the color of the first window,
    in declaration order, with a pane attached to it.
    """
    subsession = config.get_subsession(name)
    if subsession is not None and subsession.color:
        return subsession.color

    for window in config.windows:
        if window.references(name):
            return window.color or None
    return None

"""Generated runtime files: the status bar clock script and tmux config.

These are derived from the session configuration on every start or refresh
and removed on stop/kill; nothing in them is authoritative.
"""
import hashlib
import logging
import os
import re
import stat
from pathlib import Path
from typing import Optional

from .exceptions import RuntimeFilesError

logger = logging.getLogger(__name__)

MAX_WINDOW_BINDINGS = 20
CLIPBOARD = "xclip -selection clipboard 2>/dev/null || wl-copy 2>/dev/null || pbcopy 2>/dev/null"


def get_runtime_dir(configured: str = "") -> Path:
    """Directory for generated files.

    Example:
        >>> get_runtime_dir("/tmp/sm")
        PosixPath('/tmp/sm')
    """
    if configured:
        return Path(configured).expanduser()
    xdg = os.environ.get("XDG_RUNTIME_DIR")
    if xdg:
        return Path(xdg) / "sessionmux"
    return Path.home() / ".cache" / "sessionmux"


def runtime_stem(session_name: str) -> str:
    """Filesystem-safe file stem for a session.

    Unsafe characters become underscores; a short hash of the real name keeps
    "my project" and "my_project" apart.
    """
    clean = re.sub(r'[^a-zA-Z0-9_-]', '_', session_name)[:40]
    suffix = hashlib.md5(session_name.encode()).hexdigest()[:6]
    return f"{clean}_{suffix}"


def status_script_content(timezone: str, show_utc: bool) -> str:
    lines = [
        "#!/bin/sh",
        f'primary_time=$(TZ="{timezone}" date "+%H:%M %Z")',
    ]
    if show_utc:
        lines.append('utc_time=$(TZ=UTC date "+[%H:%M UTC]")')
        lines.append('echo "$primary_time $utc_time"')
    else:
        lines.append('echo "$primary_time"')
    return "\n".join(lines) + "\n"


def tmux_conf_content(status_script: Path, window_count: int) -> str:
    lines = [
        "# Generated by sessionmux",
        'set -g default-terminal "tmux-256color"',
        'set -ga terminal-overrides ",*256col*:Tc"',
        "set -g mouse on",
        "",
        "set -g set-clipboard on",
        f"set -s copy-command '{CLIPBOARD}'",
        "",
        "set -g base-index 1",
        "",
        "set -g status on",
        "set -g status-interval 1",
        "set -g status-left-length 50",
        "set -g status-right-length 100",
        f"set -g status-right '#({status_script})'",
        "set -g status-bg black",
        "set -g status-fg white",
        "",
        "bind -n M-Left select-pane -L",
        "bind -n M-Right select-pane -R",
        "bind -n M-Up select-pane -U",
        "bind -n M-Down select-pane -D",
        "bind -n M-h select-pane -L",
        "bind -n M-j select-pane -D",
        "bind -n M-k select-pane -U",
        "bind -n M-l select-pane -R",
        "",
    ]
    for index in range(1, min(window_count, MAX_WINDOW_BINDINGS) + 1):
        lines.append(f"bind -n M-{index} select-window -t {index}")
    lines.extend([
        "",
        "bind -n M-n next-window",
        "bind -n M-p previous-window",
        "",
        "setw -g mode-keys vi",
        "bind -T copy-mode-vi v send -X begin-selection",
        f'bind -T copy-mode-vi y send -X copy-pipe-and-cancel "{CLIPBOARD}"',
        "",
        "set -g pane-border-style fg=brightblack",
        "set -g pane-active-border-style fg=white",
    ])
    return "\n".join(lines) + "\n"


class RuntimeFiles:
    """The generated files belonging to one session."""

    def __init__(self, session_name: str, runtime_dir: Optional[Path] = None):
        self.session_name = session_name
        self.directory = runtime_dir or get_runtime_dir()
        stem = runtime_stem(session_name)
        self.status_script = self.directory / f"{stem}-time.sh"
        self.tmux_conf = self.directory / f"{stem}-tmux.conf"

    def write(self, timezone: str, show_utc: bool, window_count: int):
        try:
            self.directory.mkdir(parents=True, exist_ok=True)

            self.status_script.write_text(status_script_content(timezone, show_utc))
            mode = self.status_script.stat().st_mode
            self.status_script.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)

            self.tmux_conf.write_text(tmux_conf_content(self.status_script, window_count))
        except OSError as e:
            raise RuntimeFilesError(f"Cannot write runtime files in {self.directory}: {e}") from e
        logger.debug(f"Wrote runtime files to {self.directory}")

    def remove(self):
        for path in (self.status_script, self.tmux_conf):
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                raise RuntimeFilesError(f"Cannot remove runtime file {path}: {e}") from e
        logger.debug(f"Removed runtime files for {self.session_name}")

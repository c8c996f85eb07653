"""Session configuration model for sessionmux."""
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .subsession import Subsession
from .window import Window

DEFAULT_TIMEZONE = "America/New_York"


class SessionConfig(BaseModel):
    """A validated session configuration."""
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, description="Top-level tmux session name")
    timezone: str = Field(DEFAULT_TIMEZONE, description="Primary timezone shown in the status bar")
    show_utc: bool = Field(True, description="Also show UTC time in the status bar")
    color: Optional[str] = Field(None, description="Status bar color of the top-level session")
    global_options: Dict[str, str] = Field(default_factory=dict, description="tmux options set with -g")
    session_options: Dict[str, str] = Field(default_factory=dict, description="tmux options for the top-level session")
    subsessions: Dict[str, Subsession] = Field(default_factory=dict, description="Subsessions by name")
    windows: List[Window] = Field(..., min_length=1, description="Windows in creation order")
    base_dir: Path = Field(default_factory=Path.cwd, description="Directory relative paths resolve against")
    source: Optional[Path] = Field(None, description="File the configuration was loaded from")

    def resolve_dir(self, path: str) -> Path:
        """Resolve a configured directory against the config file's directory."""
        resolved = Path(path or ".").expanduser()
        if not resolved.is_absolute():
            resolved = self.base_dir / resolved
        return resolved

    def get_subsession(self, name: str) -> Optional[Subsession]:
        return self.subsessions.get(name)

    def get_window(self, name: str) -> Optional[Window]:
        for window in self.windows:
            if window.name == name:
                return window
        return None

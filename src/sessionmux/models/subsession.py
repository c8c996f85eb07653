"""Subsession model for sessionmux."""
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class Subsession(BaseModel):
    """An independently running background tmux session."""
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, description="tmux session name")
    dir: str = Field("", description="Working directory, relative to the config file")
    command: str = Field("", description="Command started in the subsession")
    delay: float = Field(0, ge=0, description="Seconds to wait before sending the command")
    env: List[Tuple[str, str]] = Field(default_factory=list, description="Exported KEY=VALUE pairs")
    execute: bool = Field(True, description="Submit the command instead of only typing it")
    history: bool = Field(False, description="Record the command in shell history")
    color: Optional[str] = Field(None, description="Status bar color, overrides the window color")
    options: Dict[str, str] = Field(default_factory=dict, description="Session-scoped tmux options")

    @property
    def has_command(self) -> bool:
        # A bare "bash" is what the pane already runs.
        return self.command.strip() not in ("", "bash")

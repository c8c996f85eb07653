"""Window model for sessionmux."""
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .pane import Pane, SubsessionPane


class Window(BaseModel):
    """A named tmux window and its ordered panes."""
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, description="Window name")
    dir: str = Field(".", description="Working directory, relative to the config file")
    color: Optional[str] = Field(None, description="Status bar color for this window")
    options: Dict[str, str] = Field(default_factory=dict, description="Window-scoped tmux options")
    panes: List[Pane] = Field(default_factory=list, description="Panes in layout order")

    def subsession_panes(self) -> List[Tuple[int, SubsessionPane]]:
        """Return (index, pane) for every pane attached to a subsession."""
        return [(i, pane) for i, pane in enumerate(self.panes)
                if isinstance(pane, SubsessionPane)]

    def references(self, subsession: str) -> bool:
        return any(pane.subsession == subsession for _, pane in self.subsession_panes())

"""Pane models for sessionmux."""
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class CommandPane(BaseModel):
    """A pane that runs (or pre-fills) a literal shell command."""
    model_config = ConfigDict(extra="forbid")

    type: Literal["command"] = "command"
    cmd: str = Field("", description="Command text sent to the pane")
    execute: bool = Field(False, description="Submit the command instead of only typing it")
    history: bool = Field(False, description="Record the command in shell history")


class SubsessionPane(BaseModel):
    """A pane that shows a nested view of a subsession."""
    model_config = ConfigDict(extra="forbid")

    type: Literal["subsession"] = "subsession"
    subsession: str = Field(..., min_length=1, description="Name of the subsession to attach")
    cmd: str = Field("", description="Command sent into the subsession before attaching")


Pane = Annotated[Union[CommandPane, SubsessionPane], Field(discriminator="type")]

PANE_TYPES = {
    "command": CommandPane,
    "subsession": SubsessionPane,
}

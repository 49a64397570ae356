"""
Pydantic schemas for the script HTTP API.
"""

from typing import Any

from pydantic import Field
from sqlmodel import SQLModel


class Message(SQLModel):
    message: str


class ScriptBundlePublic(SQLModel):
    """Bundle for remote clients: notes are replaced by their ids."""

    note_id: str
    script: str = ""
    html: str = ""
    all_note_ids: list[str] = Field(default_factory=list)


class ScriptExecIn(SQLModel):
    """Body for POST /script/exec."""

    script: str = Field(..., min_length=1, description="Callable expression, e.g. a lambda.")
    params: list[Any] = Field(
        default_factory=list,
        description='Arguments; strings prefixed "!@#Function: " are spliced in as code.',
    )
    start_note_id: str = Field(..., min_length=1, max_length=32)
    current_note_id: str = Field(..., min_length=1, max_length=32)
    origin_entity_name: str | None = Field(default=None, max_length=32)
    origin_entity_id: str | None = Field(default=None, max_length=32)


class ScriptExecOut(SQLModel):
    success: bool = True
    data: Any = None
    logs: list[str] = Field(default_factory=list)

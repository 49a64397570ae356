"""
Note tree models: Note, Branch, Label.

A note may be placed under several parents (one Branch per placement), so the
tree is really a graph; traversals must not assume each note is reached once.
"""

import secrets
import string
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import Column, Enum as SQLEnum, Text
from sqlmodel import Field, SQLModel

_ID_ALPHABET = string.ascii_letters + string.digits

MIME_PYTHON = "text/x-python"
MIME_PYTHON_BACKEND = "text/x-python;env=backend"
MIME_PYTHON_FRONTEND = "text/x-python;env=frontend"
MIME_HTML = "text/html"


def _utc_now() -> datetime:
    """Timezone-aware UTC now (replaces deprecated datetime.utcnow())."""
    return datetime.now(timezone.utc)


def new_entity_id() -> str:
    """Random 12-character alphanumeric id (safe inside identifiers)."""
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(12))


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class NoteTypeEnum(str, Enum):
    """Note types. CODE and FILE notes can hold scripts or markup."""

    TEXT = "text"
    CODE = "code"
    RENDER = "render"
    FILE = "file"
    IMAGE = "image"
    SEARCH = "search"


class ScriptEnvEnum(str, Enum):
    """Runtime a script targets."""

    BACKEND = "backend"
    FRONTEND = "frontend"


# ---------------------------------------------------------------------------
# Note
# ---------------------------------------------------------------------------


class Note(SQLModel, table=True):
    __tablename__ = "note"

    note_id: str = Field(default_factory=new_entity_id, primary_key=True, max_length=32)
    title: str = Field(default="", max_length=255)
    type: NoteTypeEnum = Field(
        default=NoteTypeEnum.TEXT,
        sa_column=Column(
            SQLEnum(
                NoteTypeEnum,
                name="notetypeenum",
                values_callable=lambda x: [e.value for e in x],
            ),
            nullable=False,
            index=True,
        ),
    )
    mime: str = Field(default=MIME_HTML, max_length=128)
    content: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    is_protected: bool = Field(default=False)
    is_deleted: bool = Field(default=False, index=True)
    source_id: str | None = Field(default=None, max_length=32)
    date_created: datetime = Field(default_factory=_utc_now)
    date_modified: datetime = Field(default_factory=_utc_now)

    @property
    def is_content_available(self) -> bool:
        """Protected content is never decrypted on the automation path."""
        return self.content is not None and not self.is_protected

    def _holds_source(self) -> bool:
        return self.type in (NoteTypeEnum.CODE, NoteTypeEnum.FILE)

    def is_code_language(self) -> bool:
        return self._holds_source() and (self.mime or "").startswith(MIME_PYTHON)

    def is_markup_language(self) -> bool:
        return self._holds_source() and self.mime == MIME_HTML

    def get_script_environment(self) -> ScriptEnvEnum | None:
        """Classify the runtime this note targets; None means neutral."""
        mime = self.mime or ""
        if self.is_markup_language() or self.type == NoteTypeEnum.RENDER:
            return ScriptEnvEnum.FRONTEND
        if self.is_code_language():
            if mime.endswith("env=frontend"):
                return ScriptEnvEnum.FRONTEND
            if mime.endswith("env=backend"):
                return ScriptEnvEnum.BACKEND
        return None


# ---------------------------------------------------------------------------
# Branch - placement of a note under a parent
# ---------------------------------------------------------------------------


class Branch(SQLModel, table=True):
    __tablename__ = "branch"

    branch_id: str = Field(default_factory=new_entity_id, primary_key=True, max_length=32)
    note_id: str = Field(
        foreign_key="note.note_id", index=True, ondelete="CASCADE", max_length=32
    )
    parent_note_id: str = Field(
        foreign_key="note.note_id", index=True, ondelete="CASCADE", max_length=32
    )
    note_position: int = Field(default=0)
    prefix: str | None = Field(default=None, max_length=255)
    is_deleted: bool = Field(default=False)
    source_id: str | None = Field(default=None, max_length=32)
    date_modified: datetime = Field(default_factory=_utc_now)


# ---------------------------------------------------------------------------
# Label - named, optionally valued annotation
# ---------------------------------------------------------------------------


class Label(SQLModel, table=True):
    __tablename__ = "label"

    label_id: str = Field(default_factory=new_entity_id, primary_key=True, max_length=32)
    note_id: str = Field(
        foreign_key="note.note_id", index=True, ondelete="CASCADE", max_length=32
    )
    name: str = Field(max_length=128, index=True)
    value: str = Field(default="", max_length=1024)
    position: int = Field(default=0)
    is_deleted: bool = Field(default=False)
    source_id: str | None = Field(default=None, max_length=32)
    date_modified: datetime = Field(default_factory=_utc_now)

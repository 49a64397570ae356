"""
The ``api`` handle each script note receives.

Reads go straight to the store. Writes are stamped with the run's source id
and committed according to the run's transaction mode.
"""

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from notescript import crud
from notescript.models import MIME_HTML, Label, Note, NoteTypeEnum

from .modules import make_log_module

if TYPE_CHECKING:
    from .context import ScriptContext


class ScriptApi:
    def __init__(self, ctx: "ScriptContext", current_note: Note) -> None:
        self._ctx = ctx
        self.start_note = ctx.start_note
        self.current_note = current_note
        self.origin_entity = ctx.origin_entity
        self.log = make_log_module(
            note_id=current_note.note_id,
            note_title=current_note.title,
            sink=ctx.log_messages,
            logger_instance=ctx.logger,
        )
        self.http = ctx.http
        self.env = ctx.env
        self.cache = ctx.make_cache(current_note.note_id)
        self.tx = _TxFacade(ctx)

    # --- reads ---------------------------------------------------------

    def get_note(self, note_id: str) -> Note | None:
        return crud.get_note(session=self._ctx.session, note_id=note_id)

    def get_child_notes(self, note_id: str) -> list[Note]:
        return crud.get_child_notes(session=self._ctx.session, note_id=note_id)

    def get_notes_with_label(self, name: str, value: str | None = None) -> list[Note]:
        return crud.get_notes_with_label(
            session=self._ctx.session, name=name, value=value
        )

    def get_note_with_label(self, name: str, value: str | None = None) -> Note | None:
        notes = self.get_notes_with_label(name, value)
        return notes[0] if notes else None

    def get_label_value(self, note_id: str, name: str) -> str | None:
        return crud.get_label_value(
            session=self._ctx.session, note_id=note_id, name=name
        )

    # --- writes --------------------------------------------------------

    def create_note(
        self,
        parent_note_id: str,
        title: str,
        content: str = "",
        type: str = NoteTypeEnum.TEXT.value,
        mime: str = MIME_HTML,
    ) -> Note:
        note = crud.create_note(
            session=self._ctx.session,
            parent_note_id=parent_note_id,
            title=title,
            content=content,
            type=type,
            mime=mime,
            source_id=self._ctx.source_id,
        )
        self._ctx.after_write()
        return note

    def set_note_content(self, note_id: str, content: str) -> Note:
        note = crud.set_note_content(
            session=self._ctx.session,
            note_id=note_id,
            content=content,
            source_id=self._ctx.source_id,
        )
        self._ctx.after_write()
        return note

    def set_label(self, note_id: str, name: str, value: str = "") -> Label:
        label = crud.set_label(
            session=self._ctx.session,
            note_id=note_id,
            name=name,
            value=value,
            source_id=self._ctx.source_id,
        )
        self._ctx.after_write()
        return label

    def remove_label(self, note_id: str, name: str) -> int:
        removed = crud.remove_label(
            session=self._ctx.session,
            note_id=note_id,
            name=name,
            source_id=self._ctx.source_id,
        )
        self._ctx.after_write()
        return removed

    def transactional(self, func: Callable[[], Any]) -> Any:
        return self._ctx.transactional(func)


class _TxFacade:
    """Transaction control for manual-transaction scripts: begin, commit, rollback."""

    def __init__(self, ctx: "ScriptContext") -> None:
        self._ctx = ctx

    def begin(self) -> None:
        self._ctx.begin_tx()

    def commit(self) -> None:
        self._ctx.commit_tx()

    def rollback(self) -> None:
        self._ctx.rollback_tx()

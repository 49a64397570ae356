"""
Store access for the note tree. Deleted notes, branches and labels are
invisible to every query here.
"""

from datetime import datetime, timezone
from typing import Any

from sqlmodel import Session, SQLModel, col, func, select

from notescript.models import MIME_HTML, Branch, Label, Note, NoteTypeEnum

ENTITY_MODELS: dict[str, type[SQLModel]] = {
    "notes": Note,
    "branches": Branch,
    "labels": Label,
}


def get_note(*, session: Session, note_id: str) -> Note | None:
    note = session.get(Note, note_id)
    if note is None or note.is_deleted:
        return None
    return note


def get_child_notes(*, session: Session, note_id: str) -> list[Note]:
    """Children of a note in their defined order."""
    stmt = (
        select(Note)
        .join(Branch, col(Branch.note_id) == col(Note.note_id))
        .where(
            Branch.parent_note_id == note_id,
            col(Branch.is_deleted).is_(False),
            col(Note.is_deleted).is_(False),
        )
        .order_by(col(Branch.note_position), col(Branch.branch_id))
    )
    return list(session.exec(stmt).all())


def get_labels(
    *, session: Session, note_id: str, name: str | None = None
) -> list[Label]:
    stmt = select(Label).where(
        Label.note_id == note_id, col(Label.is_deleted).is_(False)
    )
    if name is not None:
        stmt = stmt.where(Label.name == name)
    return list(session.exec(stmt.order_by(col(Label.position))).all())


def get_label(*, session: Session, note_id: str, name: str) -> Label | None:
    labels = get_labels(session=session, note_id=note_id, name=name)
    return labels[0] if labels else None


def has_label(*, session: Session, note_id: str, name: str) -> bool:
    return get_label(session=session, note_id=note_id, name=name) is not None


def get_label_value(*, session: Session, note_id: str, name: str) -> str | None:
    label = get_label(session=session, note_id=note_id, name=name)
    return label.value if label is not None else None


def get_notes_with_label(
    *, session: Session, name: str, value: str | None = None
) -> list[Note]:
    stmt = (
        select(Note)
        .join(Label, col(Label.note_id) == col(Note.note_id))
        .where(
            Label.name == name,
            col(Label.is_deleted).is_(False),
            col(Note.is_deleted).is_(False),
        )
    )
    if value is not None:
        stmt = stmt.where(Label.value == value)
    return list(session.exec(stmt.distinct()).all())


def get_code_notes_with_run_label(*, session: Session, value: str) -> list[Note]:
    """Non-deleted code notes carrying a non-deleted label run=<value>."""
    stmt = (
        select(Note)
        .join(Label, col(Label.note_id) == col(Note.note_id))
        .where(
            Label.name == "run",
            Label.value == value,
            col(Label.is_deleted).is_(False),
            Note.type == NoteTypeEnum.CODE,
            col(Note.is_deleted).is_(False),
        )
        .order_by(col(Note.note_id))
    )
    return list(session.exec(stmt.distinct()).all())


def get_entity_from_name(
    *, session: Session, entity_name: str | None, entity_id: str | None
) -> Any:
    """Load an entity by its table-style name ("notes", "branches", "labels")."""
    if not entity_name or not entity_id:
        return None
    model = ENTITY_MODELS.get(entity_name)
    if model is None:
        raise ValueError(f"Unknown entity name: {entity_name}")
    return session.get(model, entity_id)


# ---------------------------------------------------------------------------
# Writes. Every write records the source id of the actor making it.
# ---------------------------------------------------------------------------


def _touch(entity: Note | Branch | Label, source_id: str | None) -> None:
    entity.source_id = source_id
    entity.date_modified = datetime.now(timezone.utc)


def _next_position(session: Session, parent_note_id: str) -> int:
    stmt = select(func.max(Branch.note_position)).where(
        Branch.parent_note_id == parent_note_id
    )
    current = session.exec(stmt).one()
    return (current or 0) + 10


def create_note(
    *,
    session: Session,
    parent_note_id: str,
    title: str,
    content: str | None = "",
    type: NoteTypeEnum | str = NoteTypeEnum.TEXT,
    mime: str = MIME_HTML,
    note_id: str | None = None,
    source_id: str | None = None,
) -> Note:
    """Create a note and place it last under ``parent_note_id``."""
    if get_note(session=session, note_id=parent_note_id) is None:
        raise ValueError(f"Parent note {parent_note_id} not found")
    note = Note(title=title, content=content, type=NoteTypeEnum(type), mime=mime)
    if note_id:
        note.note_id = note_id
    _touch(note, source_id)
    session.add(note)
    session.flush()
    branch = Branch(
        note_id=note.note_id,
        parent_note_id=parent_note_id,
        note_position=_next_position(session, parent_note_id),
    )
    _touch(branch, source_id)
    session.add(branch)
    session.flush()
    return note


def add_branch(
    *,
    session: Session,
    note_id: str,
    parent_note_id: str,
    source_id: str | None = None,
) -> Branch:
    """Place an existing note under one more parent."""
    branch = Branch(
        note_id=note_id,
        parent_note_id=parent_note_id,
        note_position=_next_position(session, parent_note_id),
    )
    _touch(branch, source_id)
    session.add(branch)
    session.flush()
    return branch


def set_note_content(
    *, session: Session, note_id: str, content: str, source_id: str | None = None
) -> Note:
    note = get_note(session=session, note_id=note_id)
    if note is None:
        raise ValueError(f"Note {note_id} not found")
    note.content = content
    _touch(note, source_id)
    session.add(note)
    session.flush()
    return note


def set_label(
    *,
    session: Session,
    note_id: str,
    name: str,
    value: str = "",
    source_id: str | None = None,
) -> Label:
    """Create the label or overwrite the value of the first one with ``name``."""
    label = get_label(session=session, note_id=note_id, name=name)
    if label is None:
        if get_note(session=session, note_id=note_id) is None:
            raise ValueError(f"Note {note_id} not found")
        position = len(get_labels(session=session, note_id=note_id)) * 10
        label = Label(note_id=note_id, name=name, position=position)
    label.value = value
    _touch(label, source_id)
    session.add(label)
    session.flush()
    return label


def remove_label(
    *, session: Session, note_id: str, name: str, source_id: str | None = None
) -> int:
    """Soft-delete every label ``name`` on the note; returns how many."""
    labels = get_labels(session=session, note_id=note_id, name=name)
    for label in labels:
        label.is_deleted = True
        _touch(label, source_id)
        session.add(label)
    session.flush()
    return len(labels)

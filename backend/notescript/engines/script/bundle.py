"""
Script bundle resolution: turn a note subtree into one runnable script.

Each included code note becomes a module factory
``def module_<id>(exports, module, require, api, <child names...>)`` followed
by a ``load_module(...)`` call. Children are emitted before their parent, so a
parent receives the already-populated exports of its child modules.
"""

import keyword
import re
from dataclasses import dataclass, field
from typing import Any

from sqlmodel import Session

from notescript import crud
from notescript.models import Note, NoteTypeEnum, ScriptEnvEnum
from notescript.schemas import ScriptBundlePublic

from .sandbox import wrap_function_body

DISABLE_INCLUSION_LABEL = "disableInclusion"

# Parameters every module factory receives before its child modules.
MODULE_PARAMS = ("exports", "module", "require", "api")

_NON_IDENTIFIER_RE = re.compile(r"[^A-Za-z0-9_]")

# Scope marker below a neutral file container: children of any environment.
_ANY_ENV: Any = object()


class ScriptBundleError(ValueError):
    """Raised when an included note cannot be turned into a module."""


@dataclass
class ScriptBundle:
    note: Note
    script: str = ""
    html: str = ""
    all_notes: list[Note] = field(default_factory=list)

    @property
    def all_note_ids(self) -> list[str]:
        return [n.note_id for n in self.all_notes]


def sanitize_variable_name(title: str) -> str:
    """
    Turn a note title into a bare identifier usable inside the sandbox.

    Siblings whose titles sanitize to the same name are not disambiguated.
    """
    name = _NON_IDENTIFIER_RE.sub("", title or "").lstrip("_")
    if (
        not name
        or name[0].isdigit()
        or keyword.iskeyword(name)
        or name in MODULE_PARAMS
    ):
        name = f"module_{name}"
    return name


def _factory_name(note: Note) -> str:
    return "module_" + _NON_IDENTIFIER_RE.sub("", note.note_id)


def _module_source(note: Note, modules: list[Note], *, root: bool) -> str:
    # name -> child note id; a later sibling with the same name wins
    child_params: dict[str, str] = {}
    for child in modules:
        child_params[sanitize_variable_name(child.title)] = child.note_id

    factory = _factory_name(note)
    try:
        factory_src = wrap_function_body(
            note.content or "", factory, [*MODULE_PARAMS, *child_params]
        )
    except SyntaxError as e:
        raise ScriptBundleError(
            f'Script note "{note.title}" ({note.note_id}) has invalid syntax: {e}'
        ) from e

    call = f"load_module({note.note_id!r}, {factory}, {list(child_params.values())!r})"
    return f"\n{factory_src}\n{'return ' if root else ''}{call}\n"


def get_script_bundle(
    note: Note,
    *,
    session: Session,
    root: bool = True,
    script_env: ScriptEnvEnum | None = None,
    included_note_ids: set[str] | None = None,
    root_env: ScriptEnvEnum | None = None,
) -> ScriptBundle | None:
    """
    Resolve the bundle rooted at ``note``; None when the note is not includable.

    ``included_note_ids`` is shared across the whole resolution: a note seen
    before yields an empty bundle, which both breaks cycles and deduplicates
    notes reachable through several parents.
    """
    if not note.is_content_available:
        return None

    if not note.is_code_language() and not note.is_markup_language():
        return None

    if not root and crud.has_label(
        session=session, note_id=note.note_id, name=DISABLE_INCLUSION_LABEL
    ):
        return None

    if root:
        script_env = root_env = note.get_script_environment()
    elif (
        note.type != NoteTypeEnum.FILE
        and script_env is not _ANY_ENV
        and note.get_script_environment() != script_env
    ):
        return None

    if included_note_ids is None:
        included_note_ids = set()

    bundle = ScriptBundle(note=note)

    if note.note_id in included_note_ids:
        return bundle

    included_note_ids.add(note.note_id)
    bundle.all_notes.append(note)

    child_env = script_env
    if note.type == NoteTypeEnum.FILE:
        # neutral containers lift the boundary for their direct children
        child_env = note.get_script_environment() or _ANY_ENV
    elif script_env is _ANY_ENV:
        # the lift only covers the container's direct children
        child_env = note.get_script_environment() or root_env

    modules: list[Note] = []
    for child in crud.get_child_notes(session=session, note_id=note.note_id):
        child_bundle = get_script_bundle(
            child,
            session=session,
            root=False,
            script_env=child_env,
            included_note_ids=included_note_ids,
            root_env=root_env,
        )
        if child_bundle is None:
            continue
        if child.is_code_language():
            modules.append(child_bundle.note)
        bundle.script += child_bundle.script
        bundle.html += child_bundle.html
        bundle.all_notes.extend(child_bundle.all_notes)

    if note.is_code_language():
        bundle.script += _module_source(note, modules, root=root)
    elif note.is_markup_language():
        bundle.html += note.content or ""

    return bundle


def get_script_bundle_for_frontend(
    note: Note, *, session: Session
) -> ScriptBundlePublic | None:
    """Bundle with notes replaced by ids; clients re-hydrate their own copies."""
    bundle = get_script_bundle(note, session=session)
    if bundle is None:
        return None
    return ScriptBundlePublic(
        note_id=bundle.note.note_id,
        script=bundle.script,
        html=bundle.html,
        all_note_ids=bundle.all_note_ids,
    )

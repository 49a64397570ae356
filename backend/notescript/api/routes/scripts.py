"""
Script endpoints: manual execution, fire-and-forget runs, frontend bundles.
"""

import asyncio
import logging
from typing import Any

from fastapi import APIRouter, HTTPException
from sqlmodel import Session

from notescript import crud
from notescript.api.deps import SessionDep
from notescript.engines.script import (
    ScriptBundleError,
    ScriptExecutor,
    ScriptModuleError,
    ScriptTimeoutError,
    get_script_bundle_for_frontend,
)
from notescript.models import Note
from notescript.schemas import Message, ScriptBundlePublic, ScriptExecIn, ScriptExecOut

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/script", tags=["script"])

FRONTEND_STARTUP = "frontend_startup"


def _get_note_or_404(session: Session, note_id: str) -> Note:
    note = crud.get_note(session=session, note_id=note_id)
    if note is None:
        raise HTTPException(status_code=404, detail="Note not found")
    return note


def _exec_in_thread(session: Session, body: ScriptExecIn) -> ScriptExecOut:
    logs: list[str] = []
    result = ScriptExecutor().execute_script(
        body.script,
        body.params,
        body.start_note_id,
        body.current_note_id,
        body.origin_entity_name,
        body.origin_entity_id,
        session=session,
        log_sink=logs,
    )
    return ScriptExecOut(success=True, data=result, logs=logs)


@router.post("/exec", response_model=ScriptExecOut)
async def exec_script(session: SessionDep, body: ScriptExecIn) -> Any:
    """Run a callable expression in the context of a note; errors come back as 400."""
    try:
        # Run in thread pool so the event loop is not blocked by the script
        return await asyncio.to_thread(_exec_in_thread, session, body)
    except (
        ScriptBundleError,
        ScriptModuleError,
        ScriptTimeoutError,
        SyntaxError,
        ValueError,
    ) as e:
        logger.info("Manual script execution failed: %s", e)
        raise HTTPException(status_code=400, detail=str(e)) from e


@router.post("/run/{note_id}", response_model=Message)
async def run_note(session: SessionDep, note_id: str) -> Any:
    """Run a code note; the outcome only shows up in the logs."""
    note = _get_note_or_404(session, note_id)
    await asyncio.to_thread(ScriptExecutor().execute_note, note, session=session)
    return Message(message="Note executed")


@router.get("/startup", response_model=list[ScriptBundlePublic])
def startup_bundles(session: SessionDep) -> Any:
    """Bundles of every code note labelled run=frontend_startup."""
    bundles = []
    for note in crud.get_code_notes_with_run_label(
        session=session, value=FRONTEND_STARTUP
    ):
        try:
            bundle = get_script_bundle_for_frontend(note, session=session)
        except ScriptBundleError as e:
            logger.warning("Skipping startup bundle %s: %s", note.note_id, e)
            continue
        if bundle is not None:
            bundles.append(bundle)
    return bundles


@router.get("/bundle/{note_id}", response_model=ScriptBundlePublic)
def bundle(session: SessionDep, note_id: str) -> Any:
    note = _get_note_or_404(session, note_id)
    try:
        out = get_script_bundle_for_frontend(note, session=session)
    except ScriptBundleError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    if out is None:
        raise HTTPException(status_code=400, detail="Note is not a script")
    return out

"""
ScriptExecutor: run note bundles inside the sandbox.

execute_note(note)      -- fire-and-forget; failures only reach the log.
execute_bundle(bundle)  -- same, for an already resolved bundle.
execute_script(...)     -- manual run of a callable expression; failures
                           propagate to the caller.

Unless the root note carries the ``manualTransactionHandling`` label, a run is
one transaction: committed when the script returns, rolled back when it raises.
Optional: SCRIPT_EXEC_TIMEOUT (signal.SIGALRM, main thread on Unix only).
"""

import json
import logging
import signal
import threading
from collections.abc import Callable
from typing import Any

from sqlmodel import Session

from notescript import crud
from notescript.core.config import settings
from notescript.models import MIME_PYTHON_BACKEND, Note, NoteTypeEnum

from .bundle import ScriptBundle, ScriptBundleError, get_script_bundle
from .context import ScriptContext, extra_modules
from .sandbox import build_restricted_globals, compile_script, wrap_function_body

_log = logging.getLogger(__name__)

MANUAL_TRANSACTION_LABEL = "manualTransactionHandling"

# Parameters starting with this marker are code, spliced in verbatim.
FUNCTION_PARAM_PREFIX = "!@#Function: "

BUNDLE_FUNCTION = "run_script_bundle"


class ScriptTimeoutError(TimeoutError):
    """Raised when script execution exceeds SCRIPT_EXEC_TIMEOUT."""

    pass


def get_params(params: list[Any] | None) -> str:
    """Render call arguments: code markers verbatim, everything else as a literal."""
    if not params:
        return ""
    rendered = []
    for p in params:
        if isinstance(p, str) and p.startswith(FUNCTION_PARAM_PREFIX):
            rendered.append(p[len(FUNCTION_PARAM_PREFIX):])
        else:
            # JSON round-trip limits values to plain literals
            rendered.append(repr(json.loads(json.dumps(p, allow_nan=False))))
    return ", ".join(rendered)


def _call_with_timeout(func: Callable[[], Any], timeout_sec: int) -> Any:
    """Run func() with signal.SIGALRM. Unix only; requires hasattr(signal, 'SIGALRM')."""
    def _handler(signum: int, frame: Any) -> None:
        raise ScriptTimeoutError(f"Script execution timed out after {timeout_sec}s")

    old = signal.signal(signal.SIGALRM, _handler)
    try:
        signal.alarm(timeout_sec)
        try:
            return func()
        finally:
            signal.alarm(0)
    finally:
        signal.signal(signal.SIGALRM, old)


class ScriptExecutor:
    """
    Run script note bundles in a RestrictedPython sandbox with a ScriptContext.
    """

    def execute(self, ctx: ScriptContext, script: str) -> Any:
        """
        Wrap the bundle script in one function, compile, run it, return its result.
        """
        source = wrap_function_body(script, BUNDLE_FUNCTION)
        code = compile_script(source, filename=f"<bundle {ctx.start_note.note_id}>")
        g = build_restricted_globals(ctx.to_dict())
        g.update(extra_modules())
        exec(code, g)
        run = g[BUNDLE_FUNCTION]

        timeout = settings.SCRIPT_EXEC_TIMEOUT
        use_signal = (
            timeout is not None
            and timeout > 0
            and hasattr(signal, "SIGALRM")
            and threading.current_thread() is threading.main_thread()
        )
        if use_signal:
            return _call_with_timeout(run, timeout)
        return run()

    def run_bundle(
        self,
        bundle: ScriptBundle,
        *,
        session: Session,
        start_note: Note | None = None,
        origin_entity: Any = None,
        log_sink: list[str] | None = None,
    ) -> Any:
        """Run a bundle in its transaction mode; errors propagate."""
        if start_note is None:
            # callers may keep a different start note, e.g. the note a manual
            # run was launched from
            start_note = bundle.note

        manual_tx = crud.has_label(
            session=session,
            note_id=bundle.note.note_id,
            name=MANUAL_TRANSACTION_LABEL,
        )
        ctx = ScriptContext(
            start_note,
            bundle.all_notes,
            origin_entity,
            session=session,
            autocommit=manual_tx,
            log_sink=log_sink,
        )
        try:
            if manual_tx:
                return self.execute(ctx, bundle.script)
            try:
                result = self.execute(ctx, bundle.script)
            except BaseException:
                session.rollback()
                raise
            session.commit()
            return result
        finally:
            ctx.release()

    def execute_bundle(
        self,
        bundle: ScriptBundle,
        *,
        session: Session,
        start_note: Note | None = None,
        origin_entity: Any = None,
    ) -> Any:
        """Like run_bundle, but failures are logged and swallowed."""
        try:
            return self.run_bundle(
                bundle,
                session=session,
                start_note=start_note,
                origin_entity=origin_entity,
            )
        except Exception as e:
            _log.error(
                'Execution of script "%s" (%s) failed with error: %s',
                bundle.note.title,
                bundle.note.note_id,
                e,
                exc_info=True,
            )
            return None

    def execute_note(
        self, note: Note, *, session: Session, origin_entity: Any = None
    ) -> None:
        """Resolve and run the bundle rooted at a code note. Never raises."""
        if not note.is_code_language() or not note.is_content_available:
            return
        try:
            bundle = get_script_bundle(note, session=session)
            if bundle is None:
                return
            self.execute_bundle(bundle, session=session, origin_entity=origin_entity)
        except ScriptBundleError as e:
            _log.error(
                'Bundling script "%s" (%s) failed: %s', note.title, note.note_id, e
            )
        except Exception as e:
            _log.error(
                'Running script "%s" (%s) failed: %s',
                note.title,
                note.note_id,
                e,
                exc_info=True,
            )

    def execute_script(
        self,
        script: str,
        params: list[Any] | None,
        start_note_id: str,
        current_note_id: str,
        origin_entity_name: str | None = None,
        origin_entity_id: str | None = None,
        *,
        session: Session,
        log_sink: list[str] | None = None,
    ) -> Any:
        """
        Call ``script`` (a callable expression) with ``params`` as if it lived
        in the current note: the current note's child modules are in scope, and
        the run reports the requested start note. Errors propagate.
        """
        start_note = crud.get_note(session=session, note_id=start_note_id)
        if start_note is None:
            raise ValueError(f"Start note {start_note_id} not found")
        current_note = crud.get_note(session=session, note_id=current_note_id)
        if current_note is None:
            raise ValueError(f"Current note {current_note_id} not found")
        origin_entity = crud.get_entity_from_name(
            session=session, entity_name=origin_entity_name, entity_id=origin_entity_id
        )

        # transient stand-in for the current note; never added to the session
        script_note = Note(
            note_id=current_note.note_id,
            title=current_note.title,
            type=NoteTypeEnum.CODE,
            mime=MIME_PYTHON_BACKEND,
            content=f"return (\n{script}\n)({get_params(params)})",
        )
        bundle = get_script_bundle(script_note, session=session)
        if bundle is None:
            raise ScriptBundleError(f"Note {current_note_id} cannot run scripts")
        return self.run_bundle(
            bundle,
            session=session,
            start_note=start_note,
            origin_entity=origin_entity,
            log_sink=log_sink,
        )

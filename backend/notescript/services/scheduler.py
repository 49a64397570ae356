"""
Scheduled script runs.

Code notes labelled ``run=<group>`` are executed when their group fires:
``backend_startup`` once shortly after start, ``hourly`` and ``daily`` on
intervals. Timers come from APScheduler's ``BackgroundScheduler``; each
matching note runs on a worker thread in its own session, so one failing
script never holds up or breaks the others.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from typing import Any

from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy import Engine
from sqlmodel import Session

from notescript import crud
from notescript.core.config import settings
from notescript.core.db import engine as main_engine
from notescript.engines import ScriptExecutor

logger = logging.getLogger(__name__)

RUN_BACKEND_STARTUP = "backend_startup"
RUN_HOURLY = "hourly"
RUN_DAILY = "daily"

_run_pool = ThreadPoolExecutor(
    max_workers=max(1, settings.SCHEDULER_MAX_WORKERS),
    thread_name_prefix="script-run",
)


def shutdown_runs() -> None:
    """Stop accepting runs and drop queued ones; in-flight runs finish on their own."""
    _run_pool.shutdown(wait=False, cancel_futures=True)


def _execute_note_by_id(note_id: str, db_engine: Engine) -> None:
    try:
        with Session(db_engine) as session:
            note = crud.get_note(session=session, note_id=note_id)
            if note is None:
                return
            ScriptExecutor().execute_note(note, session=session)
    except Exception:
        logger.exception("Scheduled run failed", extra={"note_id": note_id})


def run_notes_with_label(
    run_attr_value: str, *, db_engine: Engine | None = None
) -> list[Future]:
    """
    Start every code note labelled ``run=<run_attr_value>`` without waiting.

    The returned futures complete when the runs finish; they never hold an
    exception, failures are logged per note.
    """
    eng = db_engine or main_engine
    with Session(eng) as session:
        note_ids = [
            n.note_id
            for n in crud.get_code_notes_with_run_label(
                session=session, value=run_attr_value
            )
        ]
    if note_ids:
        logger.info("Running %d script(s) for run=%s", len(note_ids), run_attr_value)
    return [_run_pool.submit(_execute_note_by_id, nid, eng) for nid in note_ids]


class ScriptScheduler:
    """Owns the three run-group timers."""

    def __init__(
        self,
        *,
        db_engine: Engine | None = None,
        startup_delay_seconds: float | None = None,
        hourly_seconds: float | None = None,
        daily_seconds: float | None = None,
    ) -> None:
        self._engine = db_engine
        self._startup_delay = (
            startup_delay_seconds
            if startup_delay_seconds is not None
            else settings.SCHEDULER_STARTUP_DELAY_SECONDS
        )
        self._hourly = hourly_seconds or settings.SCHEDULER_HOURLY_SECONDS
        self._daily = daily_seconds or settings.SCHEDULER_DAILY_SECONDS
        self._scheduler = BackgroundScheduler(timezone=timezone.utc)

    @property
    def running(self) -> bool:
        return bool(self._scheduler.running)

    def _job_kwargs(self) -> dict[str, Any]:
        return {"db_engine": self._engine}

    def start(self) -> None:
        if self.running:
            return
        run_at = datetime.now(timezone.utc) + timedelta(seconds=self._startup_delay)
        self._scheduler.add_job(
            run_notes_with_label,
            "date",
            run_date=run_at,
            args=[RUN_BACKEND_STARTUP],
            kwargs=self._job_kwargs(),
            id=f"scripts_{RUN_BACKEND_STARTUP}",
            replace_existing=True,
        )
        for group, seconds in ((RUN_HOURLY, self._hourly), (RUN_DAILY, self._daily)):
            self._scheduler.add_job(
                run_notes_with_label,
                "interval",
                seconds=seconds,
                args=[group],
                kwargs=self._job_kwargs(),
                id=f"scripts_{group}",
                replace_existing=True,
            )
        self._scheduler.start()
        logger.info(
            "Script scheduler started (startup in %ss, hourly=%ss, daily=%ss)",
            self._startup_delay,
            self._hourly,
            self._daily,
        )

    def stop(self) -> None:
        if self.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Script scheduler stopped")


script_scheduler = ScriptScheduler()

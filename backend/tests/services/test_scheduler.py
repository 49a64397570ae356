"""Tests for scheduled script runs: label selection, failure isolation, timers."""

import logging
from concurrent.futures import ThreadPoolExecutor, wait
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy import Engine
from sqlmodel import Session

from notescript import crud
from notescript.models import NoteTypeEnum
from notescript.services.scheduler import (
    RUN_BACKEND_STARTUP,
    RUN_DAILY,
    RUN_HOURLY,
    ScriptScheduler,
    run_notes_with_label,
    shutdown_runs,
)
from tests.utils.note import create_note, create_root


def _mark(note_id: str) -> str:
    return f"api.create_note('root', 'ran-{note_id}')"


class TestRunNotesWithLabel:
    def test_selects_code_notes_with_matching_value(
        self, db: Session, db_engine: Engine
    ) -> None:
        create_root(db)
        create_note(db, parent_note_id="root", note_id="h1", labels={"run": "hourly"})
        create_note(db, parent_note_id="root", note_id="d1", labels={"run": "daily"})
        create_note(
            db,
            parent_note_id="root",
            note_id="txt",
            type=NoteTypeEnum.TEXT,
            labels={"run": "hourly"},
        )
        create_note(db, parent_note_id="root", note_id="h2", labels={"run": "hourly"})

        with patch("notescript.services.scheduler._execute_note_by_id") as run:
            futures = run_notes_with_label("hourly", db_engine=db_engine)
            wait(futures)

        assert sorted(c.args[0] for c in run.call_args_list) == ["h1", "h2"]

    def test_no_matches(self, db: Session, db_engine: Engine) -> None:
        create_root(db)
        assert run_notes_with_label("daily", db_engine=db_engine) == []

    def test_failure_does_not_block_others(
        self, db: Session, db_engine: Engine, caplog: pytest.LogCaptureFixture
    ) -> None:
        create_root(db)
        create_note(db, parent_note_id="root", note_id="a", content=_mark("a"),
                    labels={"run": "daily"})
        create_note(db, parent_note_id="root", note_id="b",
                    content="raise RuntimeError('b broke')", labels={"run": "daily"})
        create_note(db, parent_note_id="root", note_id="c", content=_mark("c"),
                    labels={"run": "daily"})

        pool = ThreadPoolExecutor(max_workers=1)
        with patch("notescript.services.scheduler._run_pool", pool):
            with caplog.at_level(logging.ERROR):
                futures = run_notes_with_label(RUN_DAILY, db_engine=db_engine)
                wait(futures)
        pool.shutdown()

        assert all(f.exception() is None for f in futures)
        with Session(db_engine) as session:
            titles = {n.title for n in crud.get_child_notes(session=session, note_id="root")}
        assert {"ran-a", "ran-c"} <= titles
        assert "b broke" in caplog.text


def test_shutdown_runs_cancels_queued() -> None:
    with patch("notescript.services.scheduler._run_pool") as pool:
        shutdown_runs()
    pool.shutdown.assert_called_once_with(wait=False, cancel_futures=True)


class TestScriptScheduler:
    @patch("notescript.services.scheduler.BackgroundScheduler")
    def test_start_registers_three_jobs(self, mock_cls: MagicMock) -> None:
        mock_cls.return_value.running = False
        sched = ScriptScheduler(
            startup_delay_seconds=10, hourly_seconds=3600, daily_seconds=86400
        )
        sched.start()

        backend = mock_cls.return_value
        ids = [c.kwargs["id"] for c in backend.add_job.call_args_list]
        assert ids == [
            f"scripts_{RUN_BACKEND_STARTUP}",
            f"scripts_{RUN_HOURLY}",
            f"scripts_{RUN_DAILY}",
        ]
        triggers = [c.args[1] for c in backend.add_job.call_args_list]
        assert triggers == ["date", "interval", "interval"]
        assert backend.add_job.call_args_list[1].kwargs["seconds"] == 3600
        assert backend.add_job.call_args_list[2].kwargs["seconds"] == 86400
        backend.start.assert_called_once()

    @patch("notescript.services.scheduler.BackgroundScheduler")
    def test_start_is_idempotent(self, mock_cls: MagicMock) -> None:
        mock_cls.return_value.running = True
        ScriptScheduler().start()
        mock_cls.return_value.add_job.assert_not_called()

    @patch("notescript.services.scheduler.BackgroundScheduler")
    def test_stop(self, mock_cls: MagicMock) -> None:
        backend = mock_cls.return_value
        backend.running = True
        ScriptScheduler().stop()
        backend.shutdown.assert_called_once_with(wait=False)

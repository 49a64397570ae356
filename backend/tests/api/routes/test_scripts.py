"""Tests for /api/v1/script routes."""

from fastapi.testclient import TestClient
from sqlmodel import Session

from notescript import crud
from notescript.core.config import settings
from notescript.models import MIME_PYTHON_FRONTEND
from tests.utils.note import create_note, create_root

BASE = f"{settings.API_V1_STR}/script"


def _exec_body(script: str, **kwargs: object) -> dict:
    body = {"script": script, "params": [], "start_note_id": "root", "current_note_id": "root"}
    body.update(kwargs)
    return body


def test_exec_returns_result_and_logs(client: TestClient, db: Session) -> None:
    create_root(db)
    r = client.post(
        f"{BASE}/exec",
        json=_exec_body("lambda a, b: api.log.info('adding') or a + b", params=[2, 3]),
    )
    assert r.status_code == 200
    data = r.json()
    assert data["success"] is True
    assert data["data"] == 5
    assert data["logs"] == ["INFO [root] adding"]


def test_exec_script_error_is_400(client: TestClient, db: Session) -> None:
    create_root(db)
    r = client.post(f"{BASE}/exec", json=_exec_body("lambda: 1 / 0"))
    assert r.status_code == 400
    assert "division by zero" in r.json()["detail"]


def test_exec_unknown_note_is_400(client: TestClient, db: Session) -> None:
    create_root(db)
    r = client.post(f"{BASE}/exec", json=_exec_body("lambda: 1", start_note_id="nope"))
    assert r.status_code == 400
    assert "not found" in r.json()["detail"]


def test_exec_requires_script(client: TestClient) -> None:
    r = client.post(f"{BASE}/exec", json=_exec_body(""))
    assert r.status_code == 422


def test_run_note(client: TestClient, db: Session) -> None:
    create_root(db)
    create_note(
        db,
        parent_note_id="root",
        note_id="job",
        content="api.set_label('root', 'lastRun', 'ok')",
    )
    r = client.post(f"{BASE}/run/job")
    assert r.status_code == 200
    assert r.json() == {"message": "Note executed"}
    db.expire_all()
    assert crud.get_label_value(session=db, note_id="root", name="lastRun") == "ok"


def test_run_failing_note_still_200(client: TestClient, db: Session) -> None:
    create_root(db)
    create_note(db, parent_note_id="root", note_id="job", content="raise ValueError('x')")
    r = client.post(f"{BASE}/run/job")
    assert r.status_code == 200


def test_run_missing_note_404(client: TestClient) -> None:
    r = client.post(f"{BASE}/run/missing")
    assert r.status_code == 404


def test_bundle(client: TestClient, db: Session) -> None:
    create_root(db)
    create_note(db, parent_note_id="root", note_id="ui", mime=MIME_PYTHON_FRONTEND,
                content="return helper['x']")
    create_note(db, parent_note_id="ui", note_id="helper", mime=MIME_PYTHON_FRONTEND,
                content="exports['x'] = 1")
    r = client.get(f"{BASE}/bundle/ui")
    assert r.status_code == 200
    data = r.json()
    assert data["note_id"] == "ui"
    assert data["all_note_ids"] == ["ui", "helper"]
    assert "load_module('helper'" in data["script"]


def test_bundle_not_a_script(client: TestClient, db: Session) -> None:
    create_root(db)
    r = client.get(f"{BASE}/bundle/root")
    assert r.status_code == 400


def test_bundle_missing_404(client: TestClient) -> None:
    assert client.get(f"{BASE}/bundle/missing").status_code == 404


def test_startup_bundles(client: TestClient, db: Session) -> None:
    create_root(db)
    create_note(db, parent_note_id="root", note_id="fe", mime=MIME_PYTHON_FRONTEND,
                labels={"run": "frontend_startup"})
    create_note(db, parent_note_id="root", note_id="be", labels={"run": "frontend_startup"})
    create_note(db, parent_note_id="root", note_id="other", mime=MIME_PYTHON_FRONTEND)
    r = client.get(f"{BASE}/startup")
    assert r.status_code == 200
    assert sorted(b["note_id"] for b in r.json()) == ["be", "fe"]

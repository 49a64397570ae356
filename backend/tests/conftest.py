import os

# Must be set before notescript.core.config is imported.
os.environ.setdefault("SQLALCHEMY_DATABASE_URI", "sqlite://")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("CACHE_ENABLED", "false")

from collections.abc import Generator  # noqa: E402
from pathlib import Path  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import Engine  # noqa: E402
from sqlmodel import Session, SQLModel  # noqa: E402

from notescript import models  # noqa: E402,F401
from notescript.api.deps import get_db  # noqa: E402
from notescript.core.db import make_engine  # noqa: E402
from notescript.main import app  # noqa: E402


@pytest.fixture()
def db_engine(tmp_path: Path) -> Generator[Engine, None, None]:
    eng = make_engine(f"sqlite:///{tmp_path / 'notes.db'}")
    SQLModel.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def db(db_engine: Engine) -> Generator[Session, None, None]:
    with Session(db_engine) as session:
        yield session


@pytest.fixture()
def client(db_engine: Engine) -> Generator[TestClient, None, None]:
    def _get_test_db() -> Generator[Session, None, None]:
        with Session(db_engine) as session:
            yield session

    app.dependency_overrides[get_db] = _get_test_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()

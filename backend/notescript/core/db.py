from sqlalchemy import event
from sqlmodel import Session, SQLModel, create_engine

from notescript.core.config import settings


def make_engine(url: str):
    """Create an engine; SQLite connections are shared with worker threads."""
    connect_args: dict = {}
    if url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    eng = create_engine(url, connect_args=connect_args)
    if url.startswith("sqlite"):

        @event.listens_for(eng, "connect")
        def _sqlite_pragmas(dbapi_conn, _record) -> None:  # noqa: ANN001
            cur = dbapi_conn.cursor()
            cur.execute("PRAGMA foreign_keys=ON")
            cur.execute("PRAGMA busy_timeout=5000")
            cur.close()

    return eng


engine = make_engine(str(settings.SQLALCHEMY_DATABASE_URI))


def init_db(session: Session) -> None:
    # Tables should be created with migrations in production; create_all keeps
    # a fresh SQLite file usable out of the box.
    from notescript import models  # noqa: F401

    SQLModel.metadata.create_all(session.get_bind())

"""
Probes behind /utils/liveness/ and /utils/health-check/.

Readiness walks ``DEPENDENCIES``: each entry names a backing service, how to
check it, and whether the current settings make it required.
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from notescript.core.config import settings
from notescript.core.db import engine
from notescript.core.redis_client import ping as redis_ping

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Dependency:
    name: str
    check: Callable[[], bool]
    required: Callable[[], bool] = lambda: True


def database_up() -> bool:
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.warning("Note store unreachable", exc_info=True)
        return False
    return True


def scheduler_running() -> bool:
    from notescript.services.scheduler import script_scheduler

    return script_scheduler.running


DEPENDENCIES: tuple[Dependency, ...] = (
    Dependency("database", database_up),
    Dependency("redis", redis_ping, lambda: settings.CACHE_ENABLED),
    Dependency("scheduler", scheduler_running, lambda: settings.SCHEDULER_ENABLED),
)


def liveness_check() -> tuple[bool, list[str]]:
    # answering at all is the signal
    return (True, [])


def readiness_check(
    dependencies: Iterable[Dependency] = DEPENDENCIES,
) -> tuple[bool, list[str]]:
    """(ok, names of required dependencies that are down)."""
    failures = [d.name for d in dependencies if d.required() and not d.check()]
    return (not failures, failures)

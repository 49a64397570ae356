"""Tests for core.health readiness and liveness."""

from unittest.mock import patch

from sqlalchemy.exc import OperationalError

from notescript.core.health import (
    Dependency,
    database_up,
    liveness_check,
    readiness_check,
)


def test_liveness_has_no_failures() -> None:
    assert liveness_check() == (True, [])


def test_readiness_with_defaults() -> None:
    # conftest disables Redis and the scheduler; the in-memory store is up
    assert readiness_check() == (True, [])


def test_readiness_reports_required_failures_only() -> None:
    deps = [
        Dependency("store", lambda: False),
        Dependency("cache", lambda: False, lambda: False),
        Dependency("timers", lambda: True),
    ]
    assert readiness_check(deps) == (False, ["store"])


def test_optional_dependency_not_checked() -> None:
    def boom() -> bool:
        raise AssertionError("should not be called")

    assert readiness_check([Dependency("cache", boom, lambda: False)]) == (True, [])


def test_database_up_false_on_store_error() -> None:
    with patch("notescript.core.health.engine") as mock_engine:
        mock_engine.connect.side_effect = OperationalError("SELECT 1", {}, Exception("gone"))
        assert database_up() is False

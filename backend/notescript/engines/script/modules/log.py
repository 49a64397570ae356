"""
Log helper for scripts: info, warn, error, debug.

Messages go to the application logger tagged with the note they came from,
and are also collected on the run so manual executions can show them.
"""

import logging
from types import SimpleNamespace
from typing import Any

logger = logging.getLogger(__name__)


def make_log_module(
    *,
    note_id: str,
    note_title: str = "",
    sink: list[str] | None = None,
    logger_instance: logging.Logger | None = None,
) -> Any:
    """Build the `log` object for one note. ``sink`` collects formatted lines."""
    log = logger_instance or logger
    prefix = f'[{note_title or note_id}] '

    def _log(level: int, msg: str, *args: Any) -> None:
        text = msg % args if args else str(msg)
        log.log(level, "%s%s", prefix, text, extra={"note_id": note_id})
        if sink is not None:
            sink.append(f"{logging.getLevelName(level)} {prefix}{text}")

    def info(msg: str, *args: Any) -> None:
        _log(logging.INFO, msg, *args)

    def warn(msg: str, *args: Any) -> None:
        _log(logging.WARNING, msg, *args)

    def error(msg: str, *args: Any) -> None:
        _log(logging.ERROR, msg, *args)

    def debug(msg: str, *args: Any) -> None:
        _log(logging.DEBUG, msg, *args)

    return SimpleNamespace(info=info, warn=warn, error=error, debug=debug)

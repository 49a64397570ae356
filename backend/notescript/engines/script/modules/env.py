"""
``api.env``: a read-only slice of the application ``Settings``.

Only the fields in ``SCRIPT_VISIBLE_SETTINGS`` are exposed; values keep the
types ``Settings`` parsed them into.
"""

from typing import Any

from notescript.core.config import Settings

SCRIPT_VISIBLE_SETTINGS = frozenset({
    "PROJECT_NAME",
    "ENVIRONMENT",
    "API_V1_STR",
    "FRONTEND_HOST",
    "CACHE_ENABLED",
    "SCHEDULER_ENABLED",
    "SCRIPT_EXEC_TIMEOUT",
})


class ScriptEnv:
    def __init__(
        self, app_settings: Settings, fields: frozenset[str] = SCRIPT_VISIBLE_SETTINGS
    ) -> None:
        self._values = app_settings.model_dump(include=set(fields))

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def keys(self) -> list[str]:
        return sorted(self._values)

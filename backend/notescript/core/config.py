import warnings
from typing import Annotated, Any, Literal

from pydantic import AnyUrl, BeforeValidator, computed_field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing_extensions import Self


def parse_cors(v: Any) -> list[str] | str:
    if isinstance(v, str) and not v.startswith("["):
        return [i.strip() for i in v.split(",") if i.strip()]
    elif isinstance(v, list | str):
        return v
    raise ValueError(v)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Use top level .env file (one level above ./backend/)
        env_file="../.env",
        env_ignore_empty=True,
        extra="ignore",
    )
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "notescript"
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"
    SENTRY_DSN: str | None = None

    BACKEND_CORS_ORIGINS: Annotated[
        list[AnyUrl] | str, BeforeValidator(parse_cors)
    ] = []
    FRONTEND_HOST: str = "http://localhost:5173"

    @computed_field  # type: ignore[prop-decorator]
    @property
    def all_cors_origins(self) -> list[str]:
        return [str(origin).rstrip("/") for origin in self.BACKEND_CORS_ORIGINS] + [
            self.FRONTEND_HOST
        ]

    SQLALCHEMY_DATABASE_URI: str = "sqlite:///./notescript.db"

    # Redis (script `cache` helper). Disabled by default.
    CACHE_ENABLED: bool = False
    REDIS_URL: str = "redis://localhost:6379/0"

    @computed_field  # type: ignore[prop-decorator]
    @property
    def redis_url(self) -> str:
        return self.REDIS_URL

    # Script engine
    SCRIPT_EXEC_TIMEOUT: int | None = None
    SCRIPT_EXTRA_MODULES: str = ""
    SCRIPT_HTTP_ALLOWED_HOSTS: str = ""

    # Scheduled runs (label run=backend_startup|hourly|daily)
    SCHEDULER_ENABLED: bool = True
    SCHEDULER_STARTUP_DELAY_SECONDS: int = 10
    SCHEDULER_HOURLY_SECONDS: int = 3600
    SCHEDULER_DAILY_SECONDS: int = 24 * 3600
    SCHEDULER_MAX_WORKERS: int = 4

    def _check_positive(self, var_name: str, value: int | None) -> None:
        if value is not None and value <= 0:
            message = f"{var_name} must be a positive number of seconds, got {value}."
            if self.ENVIRONMENT == "local":
                warnings.warn(message, stacklevel=1)
            else:
                raise ValueError(message)

    @model_validator(mode="after")
    def _enforce_positive_intervals(self) -> Self:
        self._check_positive("SCRIPT_EXEC_TIMEOUT", self.SCRIPT_EXEC_TIMEOUT)
        self._check_positive(
            "SCHEDULER_HOURLY_SECONDS", self.SCHEDULER_HOURLY_SECONDS
        )
        self._check_positive("SCHEDULER_DAILY_SECONDS", self.SCHEDULER_DAILY_SECONDS)
        return self


settings = Settings()  # type: ignore

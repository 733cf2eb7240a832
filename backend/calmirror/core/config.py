from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator, model_validator
from typing import Any, ClassVar
import json
from pathlib import Path
import os


class Settings(BaseSettings):
    model_config = SettingsConfigDict(extra="forbid", case_sensitive=True)

    # JWT configuration for sessions issued by the auth service
    # (provide a fallback for local development)
    SECRET_KEY: str = "fallback_secret_for_dev_only"
    ALGORITHM: str = "HS256"

    # Database URL
    # Use an absolute path so running the app from different directories
    # (e.g., repo root or backend/) always resolves the same DB file.
    BASE_DIR: ClassVar[Path] = Path(__file__).resolve().parents[2]
    SQLALCHEMY_DATABASE_URL: str = f"sqlite:///{BASE_DIR / 'calmirror.db'}"

    # CORS origins
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]
    CORS_ALLOW_ALL: bool = False

    LOG_LEVEL: str = "INFO"

    # Google OAuth client used to refresh linked-account tokens
    GOOGLE_CLIENT_ID: str = ""
    GOOGLE_CLIENT_SECRET: str = ""
    GOOGLE_TOKEN_URI: str = "https://oauth2.googleapis.com/token"
    GOOGLE_REVOKE_URI: str = "https://oauth2.googleapis.com/revoke"

    # Shared secret for the external cron trigger. Empty means unconfigured.
    CRON_SECRET: str = ""

    # Calendar mirror tuning
    GCAL_SYNC_BATCH_SIZE: int = 50
    GCAL_TOKEN_REFRESH_WINDOW_SECONDS: int = 60
    GCAL_CALENDAR_NAME: str = "The Media Calendar"
    GCAL_CALENDAR_DESCRIPTION: str = "Synced events from themediacalendar.com"
    GCAL_DEFAULT_TIMEZONE: str = "America/New_York"
    GCAL_ICAL_UID_DOMAIN: str = "adtech-events-hub"
    GCAL_SOURCE_TITLE: str = "The Media Calendar"

    # Filters matching at least this share of published events prompt the
    # user to take the FULL subscription instead.
    LARGE_FILTER_THRESHOLD_PERCENT: int = 50

    @field_validator("CORS_ORIGINS", mode="before")
    def split_origins(cls, v: Any) -> list[str]:
        """Parse comma-separated or JSON list of origins from environment."""
        if isinstance(v, str):
            try:
                parsed = json.loads(v)
                if isinstance(parsed, list):
                    return parsed
            except json.JSONDecodeError:
                pass
            return [s.strip() for s in v.split(",") if s.strip()]
        return v

    @field_validator(
        "GOOGLE_CLIENT_ID",
        "GOOGLE_CLIENT_SECRET",
        "CRON_SECRET",
        "SECRET_KEY",
        mode="before",
    )
    def strip_whitespace(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("GCAL_SYNC_BATCH_SIZE", "GCAL_TOKEN_REFRESH_WINDOW_SECONDS")
    def non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("must be >= 0")
        return v

    @model_validator(mode="after")
    def allow_all_if_requested(cls, values: "Settings") -> "Settings":
        if values.CORS_ALLOW_ALL:
            values.CORS_ORIGINS = ["*"]
        return values


def _env_file() -> str:
    return os.getenv("ENV_FILE", str(Path(__file__).resolve().parents[3] / ".env"))


def load_settings() -> "Settings":
    return Settings(_env_file=_env_file())


settings = load_settings()

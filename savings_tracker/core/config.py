"""Environment-driven configuration for the Savings Tracker API.

Every tunable lives on ``AppSettings`` so the rest of the code base can import
``settings`` and never touch ``os.environ`` directly. Values come from the
process environment first and then from ``.env`` files in the working
directory.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Iterable

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Environment-driven application configuration."""

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    APP_NAME: str = "SavingsTracker"
    DATA_DIR: Path = Field(default_factory=lambda: Path(__file__).resolve().parents[2] / "data")
    LOG_LEVEL: str = "INFO"

    # ``None`` means "derive from DATA_DIR" (see ``get_settings``).
    DB_URL: str | None = Field(default=None, validation_alias=AliasChoices("DB_URL", "DATABASE_URL"))

    # ---- Identity provider
    # ``local`` keeps users in our own table and signs tokens with JWT_SECRET;
    # ``gotrue`` delegates to a hosted Supabase/GoTrue auth server.
    IDENTITY_BACKEND: str = "local"
    JWT_SECRET: str = Field(
        default="change-me",
        validation_alias=AliasChoices("JWT_SECRET", "SUPABASE_JWT_SECRET"),
    )
    JWT_AUDIENCE: str = "authenticated"
    JWT_ACCESS_TTL_MIN: int = 60
    JWT_REFRESH_TTL_DAYS: int = 30
    SUPABASE_URL: str = ""
    SUPABASE_SERVICE_ROLE_KEY: str = ""
    SUPABASE_ANON_KEY: str = ""
    IDENTITY_TIMEOUT: float = 10.0

    # Extra attempts for the stale-share cleanup that follows an ownership transfer.
    TRANSFER_CLEANUP_RETRIES: int = 1

    ALLOWED_ORIGINS: list[str] = Field(default_factory=list)

    HOST: str = "0.0.0.0"
    PORT: int = 8089

    @property
    def service_key(self) -> str:
        return self.SUPABASE_SERVICE_ROLE_KEY or self.SUPABASE_ANON_KEY

    @field_validator("IDENTITY_BACKEND", mode="before")
    @classmethod
    def normalize_backend(cls, value: Any) -> str:
        backend = str(value or "local").strip().lower()
        if backend not in {"local", "gotrue"}:
            raise ValueError("IDENTITY_BACKEND must be 'local' or 'gotrue'")
        return backend

    @field_validator("ALLOWED_ORIGINS", mode="before")
    @classmethod
    def parse_allowed_origins(cls, value: Any) -> list[str]:
        if value in (None, "", []):
            return []
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        if isinstance(value, Iterable):
            return [str(item).strip() for item in value if str(item).strip()]
        raise TypeError("ALLOWED_ORIGINS must be a comma separated string or list")


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    settings = AppSettings()
    settings.DATA_DIR.mkdir(parents=True, exist_ok=True)
    if not settings.DB_URL:
        settings.DB_URL = f"sqlite:///{settings.DATA_DIR}/data.db"
    return settings


settings = get_settings()

"""Application configuration models."""

from __future__ import annotations

from datetime import timedelta
from functools import lru_cache
from typing import Literal

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_SYNC_INTERVAL_HOURS = 6


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="ShowSync", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=3000, alias="PORT")

    episodate_api_url: HttpUrl = Field(
        default="https://www.episodate.com/api", alias="EPISODATE_API_URL"
    )

    sync_enabled: bool = Field(default=True, alias="SYNC_ENABLED")
    sync_interval_hours: int = Field(
        default=DEFAULT_SYNC_INTERVAL_HOURS, alias="SYNC_INTERVAL_HOURS"
    )

    database_url: str = Field(
        default="sqlite+aiosqlite:///./showsync.db", alias="DATABASE_URL"
    )

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @field_validator("sync_interval_hours", mode="before")
    @classmethod
    def _parse_sync_interval(cls, value: object) -> int:
        """Fall back to the default interval for blank or unusable values."""

        if value is None:
            return DEFAULT_SYNC_INTERVAL_HOURS
        if isinstance(value, str):
            value = value.strip()
            if not value:
                return DEFAULT_SYNC_INTERVAL_HOURS
        try:
            hours = int(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return DEFAULT_SYNC_INTERVAL_HOURS
        if hours <= 0:
            return DEFAULT_SYNC_INTERVAL_HOURS
        return hours

    @property
    def sync_interval(self) -> timedelta:
        """Return the delay between two synchronization cycles."""

        return timedelta(hours=self.sync_interval_hours)

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()

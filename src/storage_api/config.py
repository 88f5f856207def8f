"""Configuration management for the storage API."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Centralised runtime configuration for the service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Storage
    storage_root: Path = Field(
        default_factory=lambda: Path.cwd() / "storage",
        description="Directory every file operation is confined to.",
    )

    # HTTP
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=4444)
    dev_ui_path: Path = Field(
        default_factory=lambda: Path.cwd() / "index.html",
        description="HTML page served at /dev-ui.",
    )
    chunk_size: int = Field(default=64 * 1024, gt=0)

    # Logging
    log_level: str = Field(default="INFO")

    @field_validator("storage_root", "dev_ui_path", mode="after")
    @classmethod
    def _absolute_path(cls, value: Path) -> Path:
        if value.is_absolute():
            return value
        return Path.cwd() / value

    @field_validator("log_level")
    @classmethod
    def _normalise_log_level(cls, value: str) -> str:
        return value.strip().upper()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance and ensure the storage root exists."""
    settings = Settings()
    settings.storage_root.mkdir(parents=True, exist_ok=True)
    return settings

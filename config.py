"""
Configuration settings for the SRS review engine.

Uses Pydantic Settings for environment variable management with .env file support.
Study settings (quotas, learning steps) are not here: they are persisted in
the key-value store, see src/srs/settings.py.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SRS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Storage
    # ========================================
    data_dir: Path = Field(
        default=Path.home() / ".srs",
        description="Directory for the JSON store and the default SQLite database",
    )
    store_backend: Literal["json", "sql", "memory"] = Field(
        default="json",
        description="Key-value store backing: json file, SQL database, or in-memory",
    )
    database_url: str | None = Field(
        default=None,
        description="SQLAlchemy URL for the sql backend (defaults to SQLite in data_dir)",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: str = Field(
        default="WARNING",
        description="Minimum loguru level for the CLI sink",
    )

    @property
    def resolved_database_url(self) -> str:
        if self.database_url:
            return self.database_url
        self.data_dir.mkdir(parents=True, exist_ok=True)
        return f"sqlite:///{self.data_dir / 'srs.db'}"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

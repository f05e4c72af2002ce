"""Application settings loaded from environment variables."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime settings for the application."""

    # Persistence backend: "memory" (volatile), "file" (JSON files) or "sql"
    storage_backend: Literal["memory", "file", "sql"] = Field(default="file")
    storage_dir: Path = Field(default=Path("/tmp/qa_synthesizer"))
    storage_uri: str = Field(default="sqlite:///qa_synthesizer.db")
    # Every key written by the store is namespaced under this prefix
    storage_prefix: str = Field(default="qa_synthesizer_")
    # Auto-save timing, in seconds
    autosave_debounce_seconds: float = Field(default=2.0, gt=0)
    autosave_interval_seconds: float = Field(default=30.0, gt=0)
    log_level: str = Field(default="INFO")
    service_name: str = Field(default="qa-synthesizer")
    environment: str = Field(default="development")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        # Allow environment variables that don't have a matching field.
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Return application settings instance."""
    return Settings()


__all__ = ["Settings", "get_settings"]

from __future__ import annotations

from typing import ClassVar, final

from pydantic_settings import BaseSettings, SettingsConfigDict


@final
class UploaderSettings(BaseSettings):
    """Client-side defaults (env prefix MEMORIES_), overridable per CLI flag."""

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_prefix="MEMORIES_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    upload_endpoint: str = "http://localhost:8000/api/upload"
    # Empty disables the email notification.
    notify_endpoint: str = "http://localhost:8000/api/send-email"
    # 0 means unbounded.
    max_files: int = 0
    # Unset means no client-side timeout.
    timeout_seconds: float | None = None
    log_level: str = "WARNING"

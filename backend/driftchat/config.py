"""Application configuration."""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_BACKEND_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables.

    Set ``DRIFTCHAT_LINK_TTL_SECONDS=null`` or
    ``DRIFTCHAT_CONVERSATION_RETENTION_SECONDS=null`` to disable that window.
    """

    app_name: str = "Driftchat Relay"
    link_ttl_seconds: int | None = 6 * 60 * 60
    message_ttl_seconds: int = Field(default=24 * 60 * 60, gt=0)
    empty_conversation_grace_seconds: int = Field(default=60 * 60, gt=0)
    conversation_retention_seconds: int | None = 7 * 24 * 60 * 60
    sweep_interval_seconds: float = Field(default=60 * 60, gt=0)
    sweep_on_startup: bool = True
    max_message_length: int = Field(default=2000, gt=0)
    session_queue_size: int = Field(default=100, gt=0)
    database_url: str | None = None
    cors_origins: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="DRIFTCHAT_",
        env_file=str(_BACKEND_DIR / ".env"),
        env_file_encoding="utf-8",
        env_parse_none_str="null",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()

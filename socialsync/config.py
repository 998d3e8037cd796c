"""
Runtime configuration for the sync client.

Loads SOCIALSYNC_* variables from the environment and from the .env file
located in the project root.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve the project root
BASE_DIR = Path(__file__).resolve().parents[1]

# Absolute path to .env
ENV_PATH = BASE_DIR / ".env"

# Load .env defaults without overriding variables already exported by the shell
load_dotenv(dotenv_path=ENV_PATH, override=False)


class Settings(BaseSettings):
    api_base_url: str = Field(default="http://localhost:3000", alias="SOCIALSYNC_API_BASE_URL")
    socket_url: str | None = Field(default=None, alias="SOCIALSYNC_SOCKET_URL")
    socket_transports: str = Field(default="websocket,polling", alias="SOCIALSYNC_SOCKET_TRANSPORTS")
    socket_connect_timeout: float = Field(default=10.0, alias="SOCIALSYNC_SOCKET_CONNECT_TIMEOUT")

    # None means no timeout, matching the mobile client
    http_timeout: float | None = Field(default=None, alias="SOCIALSYNC_HTTP_TIMEOUT")

    token_path: Path = Field(default=Path.home() / ".socialsync" / "session.json", alias="SOCIALSYNC_TOKEN_PATH")

    retry_max_attempts: int = Field(default=3, ge=1, alias="SOCIALSYNC_RETRY_MAX_ATTEMPTS")
    retry_base_delay: float = Field(default=1.0, ge=0.0, alias="SOCIALSYNC_RETRY_BASE_DELAY")
    poll_interval: float = Field(default=30.0, gt=0.0, alias="SOCIALSYNC_POLL_INTERVAL")

    log_level: str = Field(default="INFO", alias="SOCIALSYNC_LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        return (value or "INFO").strip().upper()

    @property
    def resolved_socket_url(self) -> str:
        return (self.socket_url or self.api_base_url).rstrip("/")

    @property
    def transports(self) -> list[str]:
        return [item.strip() for item in self.socket_transports.split(",") if item.strip()]


@lru_cache()
def get_settings() -> Settings:
    return Settings()


__all__ = ["Settings", "get_settings"]

"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    telegram_bot_token: str
    redis_url: str = "redis://localhost:6379/0"
    admin_token: str
    app_url: str | None = None
    session_ttl_seconds: int = 300
    expired_grace_seconds: int = 60
    stream_poll_interval_seconds: float = 0.5
    stream_max_wait_seconds: float = 60.0
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def webhook_url(app_url: str) -> str:
    """Return the Telegram webhook URL served under the public app URL."""
    return f"{app_url.rstrip('/')}/api/telegram/webhook"

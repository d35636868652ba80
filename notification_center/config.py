"""Notification client configuration settings."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_FILE = ".env"
ENV_FILE_ENCODING = "utf-8"
ENV_PREFIX = "NOTIFICATIONS_"


class Settings(BaseSettings):
    """Notification client values loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=ENV_FILE,
        env_file_encoding=ENV_FILE_ENCODING,
        env_prefix=ENV_PREFIX,
        extra="ignore",
    )

    api_url: str = Field(
        default="http://localhost:54321",
        description="Base URL of the hosted data API serving the notifications table",
        min_length=1,
    )
    api_key: str | None = Field(
        default=None,
        description="API key sent with every data API request",
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis URL used as the push channel transport",
        min_length=1,
    )
    channel_topic: str = Field(
        default="notifications",
        description="Pub/sub topic carrying notification change events",
        min_length=1,
    )
    heartbeat_interval: float = Field(
        default=30.0,
        description="Seconds between liveness heartbeats",
        gt=0,
    )
    reconnect_delay: float = Field(
        default=5.0,
        description="Initial delay in seconds before resubscribing after a failure",
        gt=0,
    )
    reconnect_backoff_factor: float = Field(
        default=2.0,
        description="Multiplier applied to the reconnect delay after each attempt (1.0 keeps it fixed)",
        ge=1.0,
    )
    reconnect_max_delay: float = Field(
        default=60.0,
        description="Upper bound in seconds for the reconnect delay",
        gt=0,
    )
    reconnect_max_attempts: int | None = Field(
        default=None,
        description="Consecutive reconnect attempts before giving up; unlimited when empty",
        gt=0,
    )
    connect_timeout: float = Field(
        default=10.0,
        description="Seconds to wait for the channel to acknowledge a subscription",
        gt=0,
    )
    backlog_limit: int = Field(
        default=50,
        description="Number of recent notifications requested from the backlog",
        gt=0,
    )
    cache_size: int = Field(
        default=50,
        description="Maximum number of notifications retained locally",
        gt=0,
    )
    http_timeout: float = Field(
        default=20.0,
        description="Timeout in seconds for data API requests",
        gt=0,
    )
    strict: bool = Field(
        default=False,
        description="Raise on programming misuse instead of logging and ignoring it",
    )
    app_timezone: str = Field(
        default="Europe/London",
        description="Timezone used for naive timestamps and display formatting",
    )
    log_level: str = Field(default="INFO", description="Root logging level")

    @model_validator(mode="after")
    def _validate_reconnect_window(self) -> "Settings":
        if self.reconnect_max_delay < self.reconnect_delay:
            raise ValueError(
                "NOTIFICATIONS_RECONNECT_MAX_DELAY must not be lower than NOTIFICATIONS_RECONNECT_DELAY"
            )
        return self


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()


def reset_settings_cache() -> None:
    """Clear the settings cache to force reloading from the environment."""

    get_settings.cache_clear()


__all__ = ["Settings", "get_settings", "reset_settings_cache"]

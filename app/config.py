"""Application configuration settings."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_FILE = ".env"
ENV_FILE_ENCODING = "utf-8"


class Settings(BaseSettings):
    """Application configuration values loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=ENV_FILE, env_file_encoding=ENV_FILE_ENCODING, extra="ignore"
    )

    database_url: str = Field(
        default="sqlite:///./messaging.db",
        description="Database connection URL used by SQLAlchemy to reach the message log",
        min_length=1,
    )
    app_timezone: str = Field(
        default="UTC",
        description="Timezone used to localize timestamps exposed by the API",
    )
    log_level: str = Field(default="INFO", description="Root logging level")
    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:4200"],
        description="Origins allowed to call the API from a browser",
    )
    message_max_length: int = Field(
        default=2000, description="Maximum number of characters in a message body", gt=0
    )
    subject_max_length: int = Field(
        default=255, description="Maximum number of characters in a message subject", gt=0
    )
    cold_load_limit: int = Field(
        default=1000,
        description="Maximum number of rows fetched when rebuilding a user's conversations",
        gt=0,
    )
    default_page_limit: int = Field(default=20, gt=0)
    max_page_limit: int = Field(default=100, gt=0)
    typing_indicator_ttl_seconds: float = Field(
        default=5.0, description="Lifetime of an ephemeral typing indicator", gt=0
    )
    feed_reconnect_initial_delay: float = Field(
        default=0.5, description="First delay before resubscribing to the change feed", ge=0
    )
    feed_reconnect_max_delay: float = Field(
        default=10.0, description="Upper bound for the reconnect backoff", ge=0
    )
    feed_reconnect_max_attempts: int = Field(
        default=5,
        description="Number of reconnect attempts before a subscription is closed",
        gt=0,
    )

    @model_validator(mode="after")
    def _validate_limits(self) -> "Settings":
        if self.max_page_limit < self.default_page_limit:
            raise ValueError("MAX_PAGE_LIMIT must be greater than or equal to DEFAULT_PAGE_LIMIT")
        if self.feed_reconnect_max_delay < self.feed_reconnect_initial_delay:
            raise ValueError(
                "FEED_RECONNECT_MAX_DELAY must be greater than or equal to "
                "FEED_RECONNECT_INITIAL_DELAY"
            )
        return self


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings instance."""

    return Settings()


def reset_settings_cache() -> None:
    """Clear the settings cache to force reloading from the environment."""

    get_settings.cache_clear()


__all__ = ["Settings", "get_settings", "reset_settings_cache"]

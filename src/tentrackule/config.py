"""Configuration management service with Pydantic Settings.

This module provides centralized configuration management for the
Tentrackule application, loading and validating environment variables
at startup.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from tentrackule.alerter.renderer import DEFAULT_DDRAGON_VERSION
from tentrackule.riot.models import Title


class RiotSettings(BaseSettings):
    """Riot Games API settings."""

    model_config = SettingsConfigDict(env_prefix="RIOT_")

    api_key: SecretStr = Field(
        alias="RIOT_API_KEY",
        description="Riot Games API key",
    )
    rate_limit_per_minute: int = Field(
        default=100,
        alias="RIOT_RATE_LIMIT_PER_MINUTE",
        description="Sustained outbound requests per minute",
        ge=1,
    )
    rate_limit_burst: int = Field(
        default=20,
        alias="RIOT_RATE_LIMIT_BURST",
        description="Requests allowed in a burst above the sustained rate",
        ge=1,
    )
    request_timeout: float = Field(
        default=10.0,
        alias="RIOT_REQUEST_TIMEOUT",
        description="HTTP request timeout in seconds",
        gt=0,
    )


class DatabaseSettings(BaseSettings):
    """Database connection settings."""

    model_config = SettingsConfigDict(env_prefix="")

    url: str = Field(
        default="sqlite+aiosqlite:///tentrackule.db",
        alias="DATABASE_URL",
        description="Async SQLAlchemy connection string",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate database URL format."""
        if not v.startswith(("sqlite+aiosqlite://", "postgresql+asyncpg://")):
            raise ValueError(
                "DATABASE_URL must be a sqlite+aiosqlite or postgresql+asyncpg connection string"
            )
        return v


class DiscordSettings(BaseSettings):
    """Discord notification settings."""

    model_config = SettingsConfigDict(env_prefix="DISCORD_")

    bot_token: SecretStr | None = Field(
        default=None,
        alias="DISCORD_BOT_TOKEN",
        description="Discord bot token used to post alerts",
    )

    @property
    def enabled(self) -> bool:
        """Check if Discord notifications are enabled."""
        return self.bot_token is not None


class PollerSettings(BaseSettings):
    """Match polling settings."""

    model_config = SettingsConfigDict(env_prefix="POLL_")

    interval_seconds: int = Field(
        default=60,
        alias="POLL_INTERVAL_SECONDS",
        description="Seconds between two polling cycles",
        ge=1,
    )
    max_concurrency: int = Field(
        default=10,
        alias="POLL_MAX_CONCURRENCY",
        description="Accounts processed simultaneously in one cycle",
        ge=1,
    )
    titles_raw: str = Field(
        default="LOL,TFT",
        alias="POLL_TITLES",
        description="Comma separated titles to poll (LOL, TFT)",
    )

    @field_validator("titles_raw")
    @classmethod
    def validate_titles(cls, v: str) -> str:
        """Validate the polled titles."""
        names = [name.strip().lower() for name in v.split(",") if name.strip()]
        if not names:
            raise ValueError("POLL_TITLES must name at least one title")
        known = {title.value for title in Title}
        unknown = [name for name in names if name not in known]
        if unknown:
            raise ValueError(f"Unknown titles in POLL_TITLES: {', '.join(unknown)}")
        return v

    @property
    def titles(self) -> list[Title]:
        """Polled titles, in configuration order without duplicates."""
        titles: list[Title] = []
        for name in self.titles_raw.split(","):
            if name.strip() and Title(name.strip().lower()) not in titles:
                titles.append(Title(name.strip().lower()))
        return titles


class Settings(BaseSettings):
    """Main application settings.

    Loads configuration from environment variables with support for
    .env files via python-dotenv.

    Example:
        ```python
        from tentrackule.config import get_settings

        settings = get_settings()
        print(settings.database.url)
        print(settings.poller.titles)
        ```
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Nested configuration groups
    riot: RiotSettings = Field(default_factory=RiotSettings)  # type: ignore[arg-type]
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    discord: DiscordSettings = Field(default_factory=DiscordSettings)
    poller: PollerSettings = Field(default_factory=PollerSettings)

    # Application settings
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )
    health_port: int = Field(
        default=8080,
        alias="HEALTH_PORT",
        description="HTTP port for health check endpoints",
        ge=1,
        le=65535,
    )
    dry_run: bool = Field(
        default=False,
        alias="DRY_RUN",
        description="Run without sending actual alerts",
    )
    ddragon_version: str = Field(
        default=DEFAULT_DDRAGON_VERSION,
        alias="DDRAGON_VERSION",
        description="Data Dragon version used for alert images",
    )

    def get_logging_level(self) -> int:
        """Get the numeric logging level."""
        level: int = getattr(logging, self.log_level)
        return level

    def redacted_summary(self) -> dict[str, str | dict[str, str]]:
        """Get a summary of settings with secrets redacted.

        Returns:
            Dictionary of settings with sensitive values masked.
        """
        return {
            "database_url": self._redact_url(self.database.url),
            "riot": {
                "api_key": "(set)" if self.riot.api_key.get_secret_value() else "(not set)",
                "rate_limit_per_minute": str(self.riot.rate_limit_per_minute),
                "rate_limit_burst": str(self.riot.rate_limit_burst),
            },
            "poller": {
                "interval_seconds": str(self.poller.interval_seconds),
                "max_concurrency": str(self.poller.max_concurrency),
                "titles": ",".join(title.name for title in self.poller.titles),
            },
            "discord_enabled": str(self.discord.enabled),
            "log_level": self.log_level,
            "health_port": str(self.health_port),
            "dry_run": str(self.dry_run),
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact password from URL if present."""
        if "@" in url and "://" in url:
            protocol_end = url.index("://") + 3
            at_pos = url.index("@")
            creds_part = url[protocol_end:at_pos]
            if ":" in creds_part:
                username = creds_part.split(":")[0]
                return f"{url[:protocol_end]}{username}:***@{url[at_pos + 1 :]}"
        return url


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the application settings singleton.

    Returns:
        The Settings instance.

    Raises:
        ValidationError: If required environment variables are missing
            or have invalid values.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing when you need to reload settings with
    different environment variables.
    """
    get_settings.cache_clear()

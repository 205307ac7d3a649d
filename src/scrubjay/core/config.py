"""ScrubJay configuration.

Application settings loaded from environment variables with SCRUBJAY_ prefix.

Example:
    >>> from scrubjay.core.config import get_settings
    >>> settings = get_settings(log_level="DEBUG")
    >>> settings.log_level
    'DEBUG'
    >>> settings.delivery_batch_size
    100
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings.

    Loads from environment variables with SCRUBJAY_ prefix.

    Example:
        >>> from scrubjay.core.config import Settings
        >>> s = Settings(database_url="sqlite:///test.db")
        >>> s.database_url
        'sqlite:///test.db'
        >>> s.dispatch_lookback
        datetime.timedelta(seconds=300)
    """

    model_config = SettingsConfigDict(
        env_prefix="SCRUBJAY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Storage
    database_url: str = Field(
        default="sqlite:///./scrubjay.db",
        description="SQLAlchemy database URL",
    )
    database_echo: bool = Field(default=False, description="Log SQL statements")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: Literal["console", "json"] = Field(default="console", description="Log format")

    # eBird
    ebird_base_url: str = Field(default="https://api.ebird.org")
    ebird_token: str | None = Field(default=None, description="eBird API token")
    ebird_back_days: int = Field(default=7, ge=1, le=30)

    # Discord
    discord_api_url: str = Field(default="https://discord.com/api/v10")
    discord_token: str | None = Field(default=None, description="Discord bot token")

    # Scheduling
    dispatch_interval_seconds: float = Field(default=60.0, gt=0)
    dispatch_lookback_minutes: float = Field(default=5.0, gt=0)
    ingest_interval_seconds: float = Field(default=300.0, gt=0)
    prune_interval_hours: float = Field(default=24.0, gt=0)
    bootstrap_timeout_seconds: float = Field(default=300.0, gt=0)

    # Delivery
    delivery_batch_size: int = Field(default=100, ge=1, le=1000)
    confirmed_window_days: int = Field(default=7, ge=1)
    retention_days: int = Field(default=90, ge=1)

    # HTTP
    request_timeout: float = Field(default=30.0, ge=1.0)
    rate_limit: float = Field(default=5.0, gt=0, description="Requests per second per client")

    @property
    def dispatch_lookback(self) -> timedelta:
        """Live dispatch watermark window."""
        return timedelta(minutes=self.dispatch_lookback_minutes)

    @property
    def confirmed_window(self) -> timedelta:
        return timedelta(days=self.confirmed_window_days)


def get_settings(**overrides: Any) -> Settings:
    """Get settings with optional overrides.

    Example:
        >>> from scrubjay.core.config import get_settings
        >>> s = get_settings(retention_days=30)
        >>> s.retention_days
        30
    """
    return Settings(**overrides)

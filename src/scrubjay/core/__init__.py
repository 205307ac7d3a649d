"""Core configuration, exceptions and logging."""

from scrubjay.core.config import Settings, get_settings
from scrubjay.core.exceptions import (
    BootstrapTimeoutError,
    ConfigurationError,
    IngestionError,
    InvalidRegionCodeError,
    NotFoundError,
    NotificationError,
    ScrubJayError,
    StorageError,
    StorageUnavailableError,
    ValidationError,
)
from scrubjay.core.logging import JsonFormatter, configure_logging

__all__ = [
    # Configuration
    "Settings",
    "get_settings",
    # Logging
    "JsonFormatter",
    "configure_logging",
    # Exceptions
    "BootstrapTimeoutError",
    "ConfigurationError",
    "IngestionError",
    "InvalidRegionCodeError",
    "NotFoundError",
    "NotificationError",
    "ScrubJayError",
    "StorageError",
    "StorageUnavailableError",
    "ValidationError",
]

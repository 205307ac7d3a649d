"""Base models and shared types.

Example:
    >>> from scrubjay.models.base import AlertKind, normalize_content_key
    >>> AlertKind.EBIRD.value
    'ebird'
    >>> normalize_content_key("  Snowy   OWL ")
    'snowy owl'
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict


class AlertKind(str, Enum):
    """Item kinds that flow through the delivery ledger.

    Example:
        >>> list(AlertKind)
        [<AlertKind.EBIRD: 'ebird'>, <AlertKind.RSS: 'rss'>]
    """

    EBIRD = "ebird"
    RSS = "rss"


class ScrubJayModel(BaseModel):
    """Base model with standard configuration."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="forbid",
    )


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def normalize_content_key(value: str) -> str:
    """Normalize a content key (species common name) for filter matching.

    Collapses internal whitespace and casefolds, so ``"Snowy  Owl"`` and
    ``"snowy owl"`` suppress the same observations.
    """
    return " ".join(value.split()).casefold()

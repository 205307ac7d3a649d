"""Ingestion protocol.

An ingestion service pulls every configured source of one kind into
storage and reports how many items were upserted.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from scrubjay.models.base import AlertKind


@runtime_checkable
class IngestionService(Protocol):
    """Pulls all configured sources of one kind into storage."""

    @property
    def kind(self) -> AlertKind:
        """Item kind this service produces."""
        ...

    async def ingest_all(self) -> int:
        """Ingest every configured source.

        Per-source failures are logged and skipped; the return value is
        the number of items upserted across all sources.
        """
        ...

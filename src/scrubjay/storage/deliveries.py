"""Delivery ledger.

Append-only record of (kind, alert id, channel) triples already sent.
Every write is insert-if-absent, so concurrent dispatch cycles and repeated
reconciliation passes never error or duplicate a row.

Example:
    >>> ledger = DeliveryLedger(db, batch_size=100)
    >>> await ledger.insert_if_absent(AlertKind.RSS, "guid-1", "chan-1")
    True
    >>> await ledger.exists(AlertKind.RSS, "guid-1", "chan-1")
    True
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import timedelta
from typing import TYPE_CHECKING

from sqlalchemy import and_, delete, func, select

from scrubjay.models.base import AlertKind, utcnow
from scrubjay.models.dispatch import DeliveryKey
from scrubjay.storage.models import DeliveryModel

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from scrubjay.storage.database import Database

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100


def _unique(keys: Iterable[DeliveryKey]) -> list[DeliveryKey]:
    return list(dict.fromkeys(DeliveryKey(AlertKind(k.kind), k.alert_id, k.channel_id) for k in keys))


def insert_deliveries(
    db: Database,
    session: Session,
    keys: Sequence[DeliveryKey],
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> int:
    """Insert ledger rows inside an existing transaction.

    Rows are written in statements of at most ``batch_size`` values;
    conflicts on the (kind, alert id, channel) key are skipped.

    Returns:
        Number of rows actually inserted.
    """
    inserted = 0
    sent_at = utcnow()
    unique = _unique(keys)
    for start in range(0, len(unique), batch_size):
        batch = unique[start : start + batch_size]
        stmt = (
            db.insert(DeliveryModel)
            .values(
                [
                    {
                        "alert_kind": key.kind.value,
                        "alert_id": key.alert_id,
                        "channel_id": key.channel_id,
                        "sent_at": sent_at,
                    }
                    for key in batch
                ]
            )
            .on_conflict_do_nothing(index_elements=["alert_kind", "alert_id", "channel_id"])
        )
        result = session.execute(stmt)
        inserted += max(result.rowcount or 0, 0)
    return inserted


class DeliveryLedger:
    """Existence checks and idempotent inserts over the deliveries table.

    Args:
        db: Database handle.
        batch_size: Maximum rows per INSERT statement.
    """

    def __init__(self, db: Database, batch_size: int = DEFAULT_BATCH_SIZE) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self._db = db
        self._batch_size = batch_size

    @property
    def batch_size(self) -> int:
        return self._batch_size

    async def exists(self, kind: AlertKind, alert_id: str, channel_id: str) -> bool:
        """Point lookup for one (kind, alert id, channel)."""
        with self._db.session() as session:
            stmt = select(DeliveryModel.alert_id).where(
                and_(
                    DeliveryModel.alert_kind == AlertKind(kind).value,
                    DeliveryModel.alert_id == alert_id,
                    DeliveryModel.channel_id == channel_id,
                )
            )
            return session.execute(stmt).first() is not None

    async def insert_if_absent(self, kind: AlertKind, alert_id: str, channel_id: str) -> bool:
        """Record one delivery. Returns False if it was already recorded."""
        with self._db.session() as session:
            inserted = insert_deliveries(
                self._db, session, [DeliveryKey(kind, alert_id, channel_id)], self._batch_size
            )
        return inserted > 0

    async def insert_many_if_absent(self, keys: Sequence[DeliveryKey]) -> int:
        """Record many deliveries in bounded sub-batches.

        Duplicates, whether within ``keys`` or already in the ledger, are
        skipped silently.

        Returns:
            Number of new rows.
        """
        if not keys:
            return 0
        with self._db.session() as session:
            inserted = insert_deliveries(self._db, session, keys, self._batch_size)
        logger.debug(f"Ledger insert: {inserted} new of {len(keys)} requested")
        return inserted

    async def prune_older_than(self, days: int) -> int:
        """Delete ledger rows sent more than ``days`` days ago.

        Maintenance only; dispatch correctness never depends on it.
        """
        cutoff = utcnow() - timedelta(days=days)
        with self._db.session() as session:
            result = session.execute(delete(DeliveryModel).where(DeliveryModel.sent_at < cutoff))
            removed = max(result.rowcount or 0, 0)
        logger.info(f"Pruned {removed} deliveries older than {days} days")
        return removed

    async def for_channel(self, channel_id: str) -> list[DeliveryKey]:
        """All ledger keys recorded for a channel."""
        with self._db.session() as session:
            rows = session.execute(
                select(
                    DeliveryModel.alert_kind,
                    DeliveryModel.alert_id,
                    DeliveryModel.channel_id,
                ).where(DeliveryModel.channel_id == channel_id)
            ).all()
        return [DeliveryKey(AlertKind(kind), alert_id, channel) for kind, alert_id, channel in rows]

    async def count(self, kind: AlertKind | None = None) -> int:
        """Number of ledger rows, optionally for one kind."""
        stmt = select(func.count()).select_from(DeliveryModel)
        if kind is not None:
            stmt = stmt.where(DeliveryModel.alert_kind == AlertKind(kind).value)
        with self._db.session() as session:
            return session.scalar(stmt) or 0

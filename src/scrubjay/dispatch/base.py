"""Shared dispatch cycle.

Every item kind runs the same loop; subclasses only supply the query,
the batching and the rendering:

    since -> undelivered rows -> batches -> render + send -> record -> log

Send failures are isolated per batch. Keys of failed batches are never
recorded, so those (item, channel) pairs are retried on the next cycle.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Generic

from scrubjay.core.exceptions import NotificationError, StorageError, StorageUnavailableError
from scrubjay.models.base import AlertKind, utcnow
from scrubjay.models.dispatch import AlertBatch, DeliveryKey, DispatchResult, RowT

if TYPE_CHECKING:
    from scrubjay.protocols.notification import Notification, Notifier
    from scrubjay.storage.deliveries import DeliveryLedger

logger = logging.getLogger(__name__)

DEFAULT_LOOKBACK = timedelta(minutes=5)


class BaseDispatcher(ABC, Generic[RowT]):
    """One dispatch strategy per :class:`AlertKind`.

    Args:
        notifier: Where rendered batches are sent.
        ledger: Delivery ledger recording successful sends.
        lookback: Window for live cycles when no ``since`` is given.
    """

    def __init__(
        self,
        notifier: Notifier,
        ledger: DeliveryLedger,
        lookback: timedelta = DEFAULT_LOOKBACK,
    ) -> None:
        self._notifier = notifier
        self._ledger = ledger
        self._lookback = lookback
        self._running = asyncio.Lock()

    @property
    @abstractmethod
    def kind(self) -> AlertKind:
        ...

    @property
    def is_running(self) -> bool:
        return self._running.locked()

    @abstractmethod
    async def get_undelivered(self, since: datetime | None = None) -> Sequence[RowT]:
        ...

    @abstractmethod
    async def build_batches(self, rows: Sequence[RowT]) -> list[AlertBatch[RowT]]:
        """Split rows into per-channel messages."""
        ...

    @abstractmethod
    def render(self, batch: AlertBatch[RowT]) -> Notification:
        ...

    def delivery_keys(self, rows: Sequence[RowT]) -> list[DeliveryKey]:
        return [DeliveryKey(self.kind, row.alert_id, row.channel_id) for row in rows]

    async def dispatch_since(self, since: datetime | None = None) -> DispatchResult:
        """Run one cycle, or skip it if the previous one is still running."""
        if self._running.locked():
            logger.warning(f"{self.kind.value} dispatch still running; skipping this cycle")
            return DispatchResult(kind=self.kind, skipped=True)

        async with self._running:
            return await self._run_cycle(since or utcnow() - self._lookback)

    async def _run_cycle(self, since: datetime) -> DispatchResult:
        result = DispatchResult(kind=self.kind)
        rows = await self.get_undelivered(since)
        result.candidates = len(rows)
        if not rows:
            logger.debug(f"No new {self.kind.value} deliveries since {since.isoformat()}")
            return result

        batches = await self.build_batches(rows)
        result.batches = len(batches)
        logger.info(
            f"Found {len(rows)} undelivered {self.kind.value} pairs in {len(batches)} batches"
        )

        delivered: list[DeliveryKey] = []
        for batch in batches:
            if await self._send(batch):
                result.sent += 1
                delivered.extend(self.delivery_keys(batch.rows))
            else:
                result.failed += 1
                if batch.channel_id not in result.failed_channels:
                    result.failed_channels.append(batch.channel_id)

        result.recorded = await self._record(delivered)
        logger.info(
            f"Marked {result.recorded} / {result.candidates} {self.kind.value} items as delivered "
            f"({result.delivery_rate:.0%})"
        )
        return result

    async def _send(self, batch: AlertBatch[RowT]) -> bool:
        try:
            ok = await self._notifier.send(batch.channel_id, self.render(batch))
        except NotificationError as e:
            logger.error(f"Failed to send {self.kind.value} alert to channel {batch.channel_id}: {e}")
            return False
        except Exception:
            logger.exception(
                f"Unexpected error sending {self.kind.value} alert to channel {batch.channel_id}"
            )
            return False
        if not ok:
            logger.error(f"Channel {batch.channel_id} rejected {self.kind.value} alert")
        return ok

    async def _record(self, keys: list[DeliveryKey]) -> int:
        if not keys:
            return 0
        try:
            return await self._ledger.insert_many_if_absent(keys)
        except StorageUnavailableError:
            raise
        except StorageError as e:
            logger.error(f"Could not record {len(keys)} {self.kind.value} deliveries: {e}")
            return 0

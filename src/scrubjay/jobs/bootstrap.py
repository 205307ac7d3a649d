"""Startup reconciliation and the readiness gate.

On start the process ingests every configured source, then records every
currently undelivered (item, channel) pair in the ledger without sending
anything. Only then does the gate open and live jobs begin, so a restart
never floods channels with backlog.

Example:
    reconciler = BootstrapReconciler([ebird_service, rss_service], [ebird, rss], ledger)
    asyncio.create_task(reconciler.run())

    await reconciler.wait_until_ready(timeout=300)   # in every live job
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

from scrubjay.core.exceptions import BootstrapTimeoutError, ScrubJayError, StorageUnavailableError
from scrubjay.models.base import AlertKind

if TYPE_CHECKING:
    from scrubjay.dispatch.base import BaseDispatcher
    from scrubjay.protocols.ingestion import IngestionService
    from scrubjay.storage.deliveries import DeliveryLedger

logger = logging.getLogger(__name__)

DEFAULT_BOOTSTRAP_TIMEOUT = 300.0


class BootstrapReconciler:
    """Runs the startup pass once and gates live jobs on its completion."""

    def __init__(
        self,
        ingestion: Sequence[IngestionService],
        dispatchers: Sequence[BaseDispatcher],
        ledger: DeliveryLedger,
    ) -> None:
        self._ingestion = list(ingestion)
        self._dispatchers = list(dispatchers)
        self._ledger = ledger
        self._ready = asyncio.Event()

    @property
    def is_ready(self) -> bool:
        return self._ready.is_set()

    async def _ingest(self) -> None:
        for service in self._ingestion:
            try:
                count = await service.ingest_all()
                logger.info(f"Bootstrap ingested {count} {service.kind.value} items")
            except StorageUnavailableError:
                raise
            except ScrubJayError as e:
                logger.error(f"Bootstrap ingestion failed for {service.kind.value}: {e}")
            except Exception:
                logger.exception(f"Unexpected error during bootstrap ingestion for {service.kind.value}")

    async def reconcile(self) -> dict[AlertKind, int]:
        """Mark every undelivered pair as delivered. Returns rows recorded per kind."""
        recorded: dict[AlertKind, int] = {}
        for dispatcher in self._dispatchers:
            rows = await dispatcher.get_undelivered(None)
            recorded[dispatcher.kind] = await self._ledger.insert_many_if_absent(
                dispatcher.delivery_keys(rows)
            )
            logger.info(
                f"Bootstrap marked {recorded[dispatcher.kind]} / {len(rows)} "
                f"{dispatcher.kind.value} items as delivered"
            )
        return recorded

    async def run(self) -> dict[AlertKind, int]:
        """Ingest, reconcile, then open the gate.

        If reconciliation raises, the gate stays closed and the error
        propagates; waiting jobs then time out instead of dispatching
        against an incomplete baseline.
        """
        logger.info("Bootstrap started")
        await self._ingest()
        try:
            recorded = await self.reconcile()
        except Exception:
            logger.exception("Bootstrap reconciliation failed; live dispatch stays disabled")
            raise
        self._ready.set()
        logger.info("Bootstrap complete; live jobs enabled")
        return recorded

    async def wait_until_ready(self, timeout: float = DEFAULT_BOOTSTRAP_TIMEOUT) -> None:
        """Block until bootstrap finished.

        Raises:
            BootstrapTimeoutError: If the gate is not open within ``timeout`` seconds.
        """
        if self._ready.is_set():
            return
        try:
            await asyncio.wait_for(self._ready.wait(), timeout)
        except TimeoutError:
            raise BootstrapTimeoutError(timeout) from None

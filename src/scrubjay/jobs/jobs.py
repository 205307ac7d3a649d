"""Periodic jobs.

Every job waits on the bootstrap gate before doing any work. A gate that
never opens makes the job raise :class:`BootstrapTimeoutError` instead of
running against an unreconciled ledger.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from scrubjay.jobs.bootstrap import DEFAULT_BOOTSTRAP_TIMEOUT
from scrubjay.models.base import AlertKind

if TYPE_CHECKING:
    from scrubjay.dispatch.service import DispatcherService
    from scrubjay.jobs.bootstrap import BootstrapReconciler
    from scrubjay.protocols.ingestion import IngestionService
    from scrubjay.storage.deliveries import DeliveryLedger

logger = logging.getLogger(__name__)


class Job(ABC):
    """A gated unit of periodic work."""

    name: str

    def __init__(
        self,
        gate: BootstrapReconciler,
        interval: timedelta,
        gate_timeout: float = DEFAULT_BOOTSTRAP_TIMEOUT,
    ) -> None:
        self.gate = gate
        self.interval = interval
        self.gate_timeout = gate_timeout

    async def __call__(self) -> Any:
        await self.gate.wait_until_ready(self.gate_timeout)
        return await self.run()

    @abstractmethod
    async def run(self) -> Any:
        ...


class IngestJob(Job):
    def __init__(
        self,
        service: IngestionService,
        gate: BootstrapReconciler,
        interval: timedelta,
        **kwargs: Any,
    ) -> None:
        super().__init__(gate, interval, **kwargs)
        self.service = service
        self.name = f"ingest-{service.kind.value}"

    async def run(self) -> int:
        count = await self.service.ingest_all()
        logger.info(f"Ingested {count} {self.service.kind.value} items")
        return count


class DispatchJob(Job):
    """Runs one live dispatch cycle for one kind."""

    def __init__(
        self,
        dispatchers: DispatcherService,
        kind: AlertKind,
        gate: BootstrapReconciler,
        interval: timedelta,
        **kwargs: Any,
    ) -> None:
        super().__init__(gate, interval, **kwargs)
        self.dispatchers = dispatchers
        self.kind = AlertKind(kind)
        self.name = f"dispatch-{self.kind.value}"

    async def run(self, since: datetime | None = None) -> Any:
        return await self.dispatchers.dispatch(self.kind, since)


class PruneJob(Job):
    """Deletes ledger rows older than the retention window."""

    name = "prune-deliveries"

    def __init__(
        self,
        ledger: DeliveryLedger,
        retention_days: int,
        gate: BootstrapReconciler,
        interval: timedelta,
        **kwargs: Any,
    ) -> None:
        super().__init__(gate, interval, **kwargs)
        self.ledger = ledger
        self.retention_days = retention_days

    async def run(self) -> int:
        return await self.ledger.prune_older_than(self.retention_days)

"""Tests for gated periodic jobs."""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

import pytest

from scrubjay.core.exceptions import BootstrapTimeoutError
from scrubjay.dispatch import DispatcherService, RssDispatcher
from scrubjay.jobs import BootstrapReconciler, DispatchJob, IngestJob, PruneJob
from scrubjay.models.base import AlertKind
from scrubjay.storage import DeliveryLedger, DispatchRepository

if TYPE_CHECKING:
    from conftest import FakeNotifier


class StubService:
    kind = AlertKind.RSS

    def __init__(self) -> None:
        self.calls = 0

    async def ingest_all(self) -> int:
        self.calls += 1
        return 3


@pytest.fixture
def gate(ledger: DeliveryLedger) -> BootstrapReconciler:
    return BootstrapReconciler([], [], ledger)


class TestGatedJobs:
    """No job runs before bootstrap opens the gate."""

    async def test_job_waits_for_gate(self, gate: BootstrapReconciler) -> None:
        service = StubService()
        job = IngestJob(service, gate, timedelta(minutes=5), gate_timeout=0.01)

        with pytest.raises(BootstrapTimeoutError):
            await job()
        assert service.calls == 0

        await gate.run()
        assert await job() == 3
        assert job.name == "ingest-rss"

    async def test_dispatch_job(
        self,
        gate: BootstrapReconciler,
        dispatch_repo: DispatchRepository,
        ledger: DeliveryLedger,
        notifier: FakeNotifier,
    ) -> None:
        service = DispatcherService([RssDispatcher(dispatch_repo, notifier, ledger)])
        job = DispatchJob(service, AlertKind.RSS, gate, timedelta(minutes=1))
        await gate.run()

        result = await job()
        assert job.name == "dispatch-rss"
        assert result.kind is AlertKind.RSS

    async def test_prune_job(self, gate: BootstrapReconciler, ledger: DeliveryLedger) -> None:
        job = PruneJob(ledger, 90, gate, timedelta(hours=24))
        await gate.run()
        assert await job() == 0
        assert job.name == "prune-deliveries"

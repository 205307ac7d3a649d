"""ScrubJay - main orchestrator.

Wires storage, ingestion, dispatch, notifiers and jobs from a
:class:`~scrubjay.core.config.Settings` instance.

Example:
    >>> import asyncio
    >>> from scrubjay.app import ScrubJay
    >>> from scrubjay.core.config import get_settings
    >>> from scrubjay.notifier import ConsoleNotifier
    >>> async def example():
    ...     settings = get_settings(database_url="sqlite://")
    ...     async with ScrubJay(settings, notifier=ConsoleNotifier()) as app:
    ...         await app.subscriptions.subscribe_ebird("chan-1", "US-CA")
    ...         return [str(scope) for _, scope in await app.subscriptions.list_ebird()]
    >>> asyncio.run(example())
    ['US-CA']
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

import httpx

from scrubjay.core.config import Settings, get_settings
from scrubjay.core.exceptions import BootstrapTimeoutError
from scrubjay.dispatch import DispatcherService, EBirdDispatcher, RssDispatcher
from scrubjay.http.client import HttpClient
from scrubjay.ingestion import EBirdFetcher, EBirdService, RssFetcher, RssService
from scrubjay.jobs import BootstrapReconciler, DispatchJob, IngestJob, JobScheduler, PruneJob
from scrubjay.models.base import AlertKind
from scrubjay.notifier import ConsoleNotifier, DiscordNotifier
from scrubjay.services import FiltersService, SubscriptionResolver, SubscriptionService
from scrubjay.storage import (
    Database,
    DeliveryLedger,
    DispatchRepository,
    EBirdRepository,
    FilterRepository,
    RssRepository,
    SourcesRepository,
    SubscriptionRepository,
)

if TYPE_CHECKING:
    from scrubjay.models.dispatch import DispatchResult
    from scrubjay.protocols.notification import Notifier

logger = logging.getLogger(__name__)


class ScrubJay:
    """Everything one running process needs.

    Args:
        settings: Application settings (default: loaded from the environment).
        notifier: Notification backend. Defaults to Discord when a bot token
            is configured, otherwise the console.
        transport: Optional httpx transport shared by all outbound clients.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        notifier: Notifier | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        s = self.settings

        self.db = Database(s.database_url, echo=s.database_echo)
        self.ledger = DeliveryLedger(self.db, batch_size=s.delivery_batch_size)
        self.dispatch_repository = DispatchRepository(self.db)
        self.subscription_repository = SubscriptionRepository(self.db, batch_size=s.delivery_batch_size)
        self.filter_repository = FilterRepository(self.db)
        self.ebird_repository = EBirdRepository(self.db)
        self.rss_repository = RssRepository(self.db)
        self.sources = SourcesRepository(self.db)

        self.subscriptions = SubscriptionService(self.subscription_repository, self.rss_repository)
        self.resolver = SubscriptionResolver(self.subscription_repository)
        self.filters = FiltersService(self.filter_repository, self.subscription_repository)

        self._ebird_http = HttpClient(
            base_url=s.ebird_base_url,
            rate_limit=s.rate_limit,
            timeout=s.request_timeout,
            transport=transport,
        )
        self._rss_http = HttpClient(rate_limit=s.rate_limit, timeout=s.request_timeout, transport=transport)
        self.ebird = EBirdService(
            EBirdFetcher(self._ebird_http, s.ebird_token, s.ebird_back_days),
            self.ebird_repository,
            self.sources,
        )
        self.rss = RssService(RssFetcher(self._rss_http), self.rss_repository, self.sources)

        if notifier is None:
            if s.discord_token:
                notifier = DiscordNotifier(
                    HttpClient(
                        base_url=s.discord_api_url,
                        rate_limit=s.rate_limit,
                        timeout=s.request_timeout,
                        transport=transport,
                    ),
                    s.discord_token,
                )
            else:
                notifier = ConsoleNotifier()
        self.notifier = notifier

        self.ebird_dispatcher = EBirdDispatcher(
            self.dispatch_repository,
            self.notifier,
            self.ledger,
            lookback=s.dispatch_lookback,
            confirmed_window=s.confirmed_window,
        )
        self.rss_dispatcher = RssDispatcher(
            self.dispatch_repository, self.notifier, self.ledger, lookback=s.dispatch_lookback
        )
        self.dispatchers = DispatcherService([self.ebird_dispatcher, self.rss_dispatcher])

        self.reconciler = BootstrapReconciler(
            [self.ebird, self.rss],
            [self.ebird_dispatcher, self.rss_dispatcher],
            self.ledger,
        )
        self._initialized = False

    async def initialize(self) -> None:
        """Create tables and start the notifier. Idempotent."""
        if self._initialized:
            return
        await self.db.initialize()
        await self.notifier.initialize()
        self._initialized = True

    async def close(self) -> None:
        await self.notifier.close()
        await self._ebird_http.close()
        await self._rss_http.close()
        await self.db.close()
        self._initialized = False

    async def __aenter__(self) -> ScrubJay:
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # =========================================================================
    # One-shot operations
    # =========================================================================

    async def bootstrap(self) -> dict[AlertKind, int]:
        return await self.reconciler.run()

    async def ingest(self) -> dict[AlertKind, int]:
        return {
            self.ebird.kind: await self.ebird.ingest_all(),
            self.rss.kind: await self.rss.ingest_all(),
        }

    async def dispatch(
        self, kind: AlertKind | None = None, since: datetime | None = None
    ) -> dict[AlertKind, DispatchResult | None]:
        if kind is not None:
            return {AlertKind(kind): await self.dispatchers.dispatch(kind, since)}
        return await self.dispatchers.dispatch_all(since)

    async def prune(self, days: int | None = None) -> int:
        return await self.ledger.prune_older_than(days or self.settings.retention_days)

    # =========================================================================
    # Long-running
    # =========================================================================

    def build_scheduler(self) -> JobScheduler:
        s = self.settings
        timeout = s.bootstrap_timeout_seconds
        scheduler = JobScheduler()
        ingest_interval = timedelta(seconds=s.ingest_interval_seconds)
        jobs = [
            *(
                IngestJob(service, self.reconciler, ingest_interval, gate_timeout=timeout)
                for service in (self.ebird, self.rss)
            ),
            *(
                DispatchJob(
                    self.dispatchers,
                    kind,
                    self.reconciler,
                    timedelta(seconds=s.dispatch_interval_seconds),
                    gate_timeout=timeout,
                )
                for kind in self.dispatchers.kinds
            ),
            PruneJob(
                self.ledger,
                s.retention_days,
                self.reconciler,
                timedelta(hours=s.prune_interval_hours),
                gate_timeout=timeout,
            ),
        ]
        for job in jobs:
            scheduler.register(job.name, job.interval, job)
        return scheduler

    async def run(self) -> None:
        """Bootstrap, then run the scheduler until cancelled.

        A bootstrap failure or timeout ends the process; live jobs never run
        against an unreconciled ledger.
        """
        await self.initialize()
        timeout = self.settings.bootstrap_timeout_seconds
        try:
            await asyncio.wait_for(self.reconciler.run(), timeout)
        except TimeoutError:
            raise BootstrapTimeoutError(timeout) from None

        scheduler = self.build_scheduler()
        logger.info(f"Scheduler started with {len(scheduler.all())} jobs")
        await scheduler.run_forever()

"""Shared fixtures: in-memory database, repositories, factories, fake notifier."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable, Iterator
from datetime import datetime, timedelta
from typing import Any

import pytest

from scrubjay.core.exceptions import NotificationError
from scrubjay.models.ebird import EBirdLocation, EBirdObservation
from scrubjay.models.rss import RssItem, RssSource
from scrubjay.protocols.notification import Notification
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

# =============================================================================
# Fakes
# =============================================================================


class FakeNotifier:
    """Records sends; channels can be set to fail or raise."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, Notification]] = []
        self.fail_channels: set[str] = set()
        self.raise_channels: set[str] = set()
        self.initialized = False

    async def initialize(self) -> None:
        self.initialized = True

    async def close(self) -> None:
        self.initialized = False

    async def send(self, channel_id: str, notification: Notification) -> bool:
        if channel_id in self.raise_channels:
            raise NotificationError("channel unreachable", channel_id=channel_id)
        if channel_id in self.fail_channels:
            return False
        self.sent.append((channel_id, notification))
        return True

    def channels(self) -> list[str]:
        return [channel for channel, _ in self.sent]


class BlockingNotifier(FakeNotifier):
    """Holds every send until released."""

    def __init__(self) -> None:
        super().__init__()
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def send(self, channel_id: str, notification: Notification) -> bool:
        self.entered.set()
        await self.release.wait()
        return await super().send(channel_id, notification)


# =============================================================================
# Logging isolation
# =============================================================================


@pytest.fixture(autouse=True)
def _reset_scrubjay_logger() -> Iterator[None]:
    """configure_logging() detaches the package logger; reattach it for caplog."""
    yield
    logger = logging.getLogger("scrubjay")
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


# =============================================================================
# Storage
# =============================================================================


@pytest.fixture
async def db() -> AsyncIterator[Database]:
    database = Database("sqlite://")
    await database.initialize()
    yield database
    await database.close()


@pytest.fixture
def ledger(db: Database) -> DeliveryLedger:
    return DeliveryLedger(db, batch_size=100)


@pytest.fixture
def dispatch_repo(db: Database) -> DispatchRepository:
    return DispatchRepository(db)


@pytest.fixture
def subscriptions(db: Database) -> SubscriptionRepository:
    return SubscriptionRepository(db)


@pytest.fixture
def filters(db: Database) -> FilterRepository:
    return FilterRepository(db)


@pytest.fixture
def ebird_repo(db: Database) -> EBirdRepository:
    return EBirdRepository(db)


@pytest.fixture
def rss_repo(db: Database) -> RssRepository:
    return RssRepository(db)


@pytest.fixture
def sources(db: Database) -> SourcesRepository:
    return SourcesRepository(db)


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def blocking_notifier() -> BlockingNotifier:
    return BlockingNotifier()


# =============================================================================
# Factories
# =============================================================================


@pytest.fixture
def make_observation() -> Callable[..., EBirdObservation]:
    """Build an observation; location fields are flat keyword arguments."""

    def factory(
        species_code: str = "snoowl1",
        sub_id: str = "S1",
        common_name: str = "Snowy Owl",
        *,
        loc_id: str = "L1",
        loc_name: str = "Dockweiler Beach",
        county: str = "Los Angeles",
        county_code: str = "US-CA-037",
        state: str = "California",
        state_code: str = "US-CA",
        is_private: bool = False,
        observed_at: datetime | None = None,
        **fields: Any,
    ) -> EBirdObservation:
        return EBirdObservation(
            species_code=species_code,
            sub_id=sub_id,
            common_name=common_name,
            scientific_name=fields.pop("scientific_name", "Bubo scandiacus"),
            observed_at=observed_at or datetime.now() - timedelta(hours=1),
            is_valid=fields.pop("is_valid", True),
            is_reviewed=fields.pop("is_reviewed", False),
            location=EBirdLocation(
                id=loc_id,
                name=loc_name,
                county=county,
                county_code=county_code,
                state=state,
                state_code=state_code,
                country_code="US",
                lat=33.9,
                lng=-118.4,
                is_private=is_private,
            ),
            **fields,
        )

    return factory


@pytest.fixture
def rss_source() -> RssSource:
    return RssSource(id="aba", name="ABA Rare Bird Alert", url="https://example.com/aba.xml")


@pytest.fixture
def make_rss_item() -> Callable[..., RssItem]:
    def factory(item_id: str = "guid-1", source_id: str = "aba", **fields: Any) -> RssItem:
        return RssItem(
            id=item_id,
            source_id=source_id,
            title=fields.pop("title", f"Item {item_id}"),
            link=fields.pop("link", f"https://example.com/{item_id}"),
            **fields,
        )

    return factory

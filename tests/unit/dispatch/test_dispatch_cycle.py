"""Tests for the dispatch cycle: at-most-once delivery, failure isolation, the run guard."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import TYPE_CHECKING

import pytest

from scrubjay.core.exceptions import NotFoundError, StorageError, StorageUnavailableError
from scrubjay.dispatch import DispatcherService, EBirdDispatcher, RssDispatcher
from scrubjay.models.base import AlertKind
from scrubjay.models.ebird import EBirdObservation
from scrubjay.models.rss import RssItem, RssSource
from scrubjay.models.scope import WholeRegion
from scrubjay.protocols.dispatcher import Dispatcher
from scrubjay.storage import (
    DeliveryLedger,
    DispatchRepository,
    EBirdRepository,
    RssRepository,
    SubscriptionRepository,
)

if TYPE_CHECKING:
    from conftest import BlockingNotifier, FakeNotifier

ObsFactory = Callable[..., EBirdObservation]


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def ebird_dispatcher(
    dispatch_repo: DispatchRepository, notifier: FakeNotifier, ledger: DeliveryLedger
) -> EBirdDispatcher:
    return EBirdDispatcher(dispatch_repo, notifier, ledger)


@pytest.fixture
def rss_dispatcher(
    dispatch_repo: DispatchRepository, notifier: FakeNotifier, ledger: DeliveryLedger
) -> RssDispatcher:
    return RssDispatcher(dispatch_repo, notifier, ledger)


@pytest.fixture
async def two_channels(subscriptions: SubscriptionRepository) -> None:
    await subscriptions.insert_ebird_subscription("a", WholeRegion("US-CA"))
    await subscriptions.insert_ebird_subscription("b", WholeRegion("US-CA"))


# =============================================================================
# eBird cycle
# =============================================================================


class TestEBirdDispatchCycle:
    """Send, record, never resend."""

    @pytest.mark.usefixtures("two_channels")
    async def test_each_pair_sent_once(
        self,
        ebird_dispatcher: EBirdDispatcher,
        ebird_repo: EBirdRepository,
        notifier: FakeNotifier,
        make_observation: ObsFactory,
    ) -> None:
        """A second cycle over the same window sends nothing."""
        await ebird_repo.upsert_observation(make_observation())

        first = await ebird_dispatcher.dispatch_since()
        assert (first.candidates, first.sent, first.recorded) == (2, 2, 2)
        assert sorted(notifier.channels()) == ["a", "b"]

        second = await ebird_dispatcher.dispatch_since()
        assert second.candidates == 0
        assert len(notifier.sent) == 2

    @pytest.mark.usefixtures("two_channels")
    async def test_reports_grouped_per_species_location(
        self,
        ebird_dispatcher: EBirdDispatcher,
        ebird_repo: EBirdRepository,
        notifier: FakeNotifier,
        make_observation: ObsFactory,
    ) -> None:
        await ebird_repo.upsert_observations(
            [
                make_observation(sub_id="S1"),
                make_observation(sub_id="S2"),
                make_observation("brant", "S3", "Brant"),
            ]
        )

        result = await ebird_dispatcher.dispatch_since()
        assert result.candidates == 6
        assert result.batches == 4
        assert result.recorded == 6

    @pytest.mark.usefixtures("two_channels")
    async def test_failed_channel_retried_next_cycle(
        self,
        ebird_dispatcher: EBirdDispatcher,
        ebird_repo: EBirdRepository,
        ledger: DeliveryLedger,
        notifier: FakeNotifier,
        make_observation: ObsFactory,
    ) -> None:
        """A failed send records nothing for that channel; others are unaffected."""
        await ebird_repo.upsert_observation(make_observation())
        notifier.fail_channels.add("b")

        result = await ebird_dispatcher.dispatch_since()
        assert (result.sent, result.failed, result.recorded) == (1, 1, 1)
        assert result.failed_channels == ["b"]
        assert await ledger.exists(AlertKind.EBIRD, "snoowl1:S1", "a")
        assert not await ledger.exists(AlertKind.EBIRD, "snoowl1:S1", "b")

        notifier.fail_channels.clear()
        retry = await ebird_dispatcher.dispatch_since()
        assert (retry.candidates, retry.recorded) == (1, 1)
        assert notifier.channels() == ["a", "b"]

    @pytest.mark.usefixtures("two_channels")
    async def test_raised_notification_error_isolated(
        self,
        ebird_dispatcher: EBirdDispatcher,
        ebird_repo: EBirdRepository,
        notifier: FakeNotifier,
        make_observation: ObsFactory,
    ) -> None:
        await ebird_repo.upsert_observation(make_observation())
        notifier.raise_channels.add("a")

        result = await ebird_dispatcher.dispatch_since()
        assert result.failed_channels == ["a"]
        assert notifier.channels() == ["b"]

    @pytest.mark.usefixtures("two_channels")
    async def test_unexpected_error_keeps_other_deliveries(
        self,
        monkeypatch: pytest.MonkeyPatch,
        ebird_dispatcher: EBirdDispatcher,
        ebird_repo: EBirdRepository,
        ledger: DeliveryLedger,
        notifier: FakeNotifier,
        make_observation: ObsFactory,
    ) -> None:
        """A crashing send still records the channels that were reached."""
        await ebird_repo.upsert_observation(make_observation())
        send = notifier.send

        async def crash_on_b(channel_id, notification):  # noqa: ANN001, ANN202
            if channel_id == "b":
                raise RuntimeError("client bug")
            return await send(channel_id, notification)

        monkeypatch.setattr(notifier, "send", crash_on_b)

        first = await ebird_dispatcher.dispatch_since()
        second = await ebird_dispatcher.dispatch_since()

        assert first.failed_channels == ["b"]
        assert (first.sent, first.recorded) == (1, 1)
        assert await ledger.exists(AlertKind.EBIRD, "snoowl1:S1", "a")
        assert not await ledger.exists(AlertKind.EBIRD, "snoowl1:S1", "b")
        assert second.candidates == 1
        assert notifier.channels() == ["a"]

    async def test_nothing_to_send(self, ebird_dispatcher: EBirdDispatcher) -> None:
        result = await ebird_dispatcher.dispatch_since()
        assert result.candidates == 0
        assert result.delivery_rate == 0.0


# =============================================================================
# Ledger failures
# =============================================================================


class TestLedgerFailures:
    @pytest.mark.usefixtures("two_channels")
    async def test_storage_error_logged_and_absorbed(
        self,
        monkeypatch: pytest.MonkeyPatch,
        ebird_dispatcher: EBirdDispatcher,
        ebird_repo: EBirdRepository,
        ledger: DeliveryLedger,
        make_observation: ObsFactory,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        await ebird_repo.upsert_observation(make_observation())

        async def broken(keys):  # noqa: ANN001, ANN202
            raise StorageError("disk full")

        monkeypatch.setattr(ledger, "insert_many_if_absent", broken)

        result = await ebird_dispatcher.dispatch_since()
        assert result.sent == 2
        assert result.recorded == 0
        assert "Could not record 2 ebird deliveries" in caplog.text

    @pytest.mark.usefixtures("two_channels")
    async def test_lost_connection_propagates(
        self,
        monkeypatch: pytest.MonkeyPatch,
        ebird_dispatcher: EBirdDispatcher,
        ebird_repo: EBirdRepository,
        ledger: DeliveryLedger,
        make_observation: ObsFactory,
    ) -> None:
        await ebird_repo.upsert_observation(make_observation())

        async def gone(keys):  # noqa: ANN001, ANN202
            raise StorageUnavailableError("connection lost")

        monkeypatch.setattr(ledger, "insert_many_if_absent", gone)

        with pytest.raises(StorageUnavailableError):
            await ebird_dispatcher.dispatch_since()


# =============================================================================
# Run guard
# =============================================================================


class TestRunGuard:
    @pytest.mark.usefixtures("two_channels")
    async def test_overlapping_cycle_skipped(
        self,
        blocking_notifier: BlockingNotifier,
        dispatch_repo: DispatchRepository,
        ledger: DeliveryLedger,
        ebird_repo: EBirdRepository,
        make_observation: ObsFactory,
    ) -> None:
        """While one cycle is in flight a second returns immediately without sending."""
        await ebird_repo.upsert_observation(make_observation())
        notifier = blocking_notifier
        dispatcher = EBirdDispatcher(dispatch_repo, notifier, ledger)

        running = asyncio.create_task(dispatcher.dispatch_since())
        await notifier.entered.wait()
        assert dispatcher.is_running

        skipped = await dispatcher.dispatch_since()
        assert skipped.skipped is True
        assert skipped.candidates == 0

        notifier.release.set()
        result = await running
        assert result.recorded == 2
        assert not dispatcher.is_running


# =============================================================================
# RSS cycle
# =============================================================================


class TestRssDispatchCycle:
    async def test_one_message_per_item(
        self,
        rss_dispatcher: RssDispatcher,
        subscriptions: SubscriptionRepository,
        rss_repo: RssRepository,
        notifier: FakeNotifier,
        rss_source: RssSource,
        make_rss_item: Callable[..., RssItem],
    ) -> None:
        await rss_repo.upsert_source(rss_source)
        await subscriptions.insert_rss_subscription("chan", "aba")
        await rss_repo.upsert_items([make_rss_item("g1"), make_rss_item("g2")])

        result = await rss_dispatcher.dispatch_since()
        assert (result.batches, result.recorded) == (2, 2)
        assert [n.description for _, n in notifier.sent] == ["Item g1", "Item g2"]
        assert (await rss_dispatcher.dispatch_since()).candidates == 0


# =============================================================================
# Registry
# =============================================================================


class TestDispatcherService:
    async def test_routes_by_kind(
        self, ebird_dispatcher: EBirdDispatcher, rss_dispatcher: RssDispatcher
    ) -> None:
        service = DispatcherService([ebird_dispatcher, rss_dispatcher])
        assert service.kinds == [AlertKind.EBIRD, AlertKind.RSS]
        assert service.get(AlertKind.RSS) is rss_dispatcher
        assert (await service.dispatch(AlertKind.EBIRD)).kind is AlertKind.EBIRD

    def test_dispatchers_implement_protocol(
        self, ebird_dispatcher: EBirdDispatcher, rss_dispatcher: RssDispatcher
    ) -> None:
        assert isinstance(ebird_dispatcher, Dispatcher)
        assert isinstance(rss_dispatcher, Dispatcher)

    def test_unknown_kind(self, ebird_dispatcher: EBirdDispatcher) -> None:
        with pytest.raises(NotFoundError):
            DispatcherService([ebird_dispatcher]).get(AlertKind.RSS)

    async def test_failing_kind_isolated(
        self,
        monkeypatch: pytest.MonkeyPatch,
        ebird_dispatcher: EBirdDispatcher,
        rss_dispatcher: RssDispatcher,
    ) -> None:
        async def broken(since=None):  # noqa: ANN001, ANN202
            raise StorageError("query failed")

        monkeypatch.setattr(ebird_dispatcher, "dispatch_since", broken)
        results = await DispatcherService([ebird_dispatcher, rss_dispatcher]).dispatch_all()

        assert results[AlertKind.EBIRD] is None
        assert results[AlertKind.RSS] is not None

    async def test_lost_connection_stops_all(
        self,
        monkeypatch: pytest.MonkeyPatch,
        ebird_dispatcher: EBirdDispatcher,
        rss_dispatcher: RssDispatcher,
    ) -> None:
        async def gone(since=None):  # noqa: ANN001, ANN202
            raise StorageUnavailableError("connection lost")

        monkeypatch.setattr(ebird_dispatcher, "dispatch_since", gone)
        with pytest.raises(StorageUnavailableError):
            await DispatcherService([ebird_dispatcher, rss_dispatcher]).dispatch_all()

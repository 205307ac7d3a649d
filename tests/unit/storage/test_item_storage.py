"""Tests for eBird and RSS item storage."""

from __future__ import annotations

from collections.abc import Callable

from scrubjay.models.ebird import EBirdObservation
from scrubjay.models.rss import RssItem, RssSource
from scrubjay.storage import Database, EBirdRepository, RssRepository
from scrubjay.storage.models import LocationModel, RssItemModel


class TestEBirdRepository:
    """Upserts keyed on (species_code, sub_id)."""

    async def test_upsert_creates_location_and_observation(
        self, ebird_repo: EBirdRepository, db: Database, make_observation: Callable[..., EBirdObservation]
    ) -> None:
        await ebird_repo.upsert_observation(make_observation())

        stored = await ebird_repo.get_observation("snoowl1", "S1")
        assert stored is not None
        assert stored.common_name_key == "snowy owl"
        assert stored.location_id == "L1"
        with db.session() as session:
            assert session.get(LocationModel, "L1").county_code == "US-CA-037"

    async def test_reingest_refreshes_but_keeps_created_at(
        self, ebird_repo: EBirdRepository, make_observation: Callable[..., EBirdObservation]
    ) -> None:
        """Review status and media update; the dispatch watermark does not move."""
        await ebird_repo.upsert_observation(make_observation(is_reviewed=False))
        first = await ebird_repo.get_observation("snoowl1", "S1")

        await ebird_repo.upsert_observation(make_observation(is_reviewed=True, photo_count=3))
        second = await ebird_repo.get_observation("snoowl1", "S1")

        assert second.is_reviewed is True
        assert second.photo_count == 3
        assert second.created_at == first.created_at
        assert await ebird_repo.count_observations() == 1

    async def test_location_refreshed(
        self, ebird_repo: EBirdRepository, db: Database, make_observation: Callable[..., EBirdObservation]
    ) -> None:
        await ebird_repo.upsert_observation(make_observation(loc_name="Old Name"))
        await ebird_repo.upsert_observation(make_observation(sub_id="S2", loc_name="New Name"))
        with db.session() as session:
            assert session.get(LocationModel, "L1").name == "New Name"

    async def test_upsert_many(
        self, ebird_repo: EBirdRepository, make_observation: Callable[..., EBirdObservation]
    ) -> None:
        observations = [make_observation(sub_id=f"S{i}") for i in range(4)]
        assert await ebird_repo.upsert_observations(observations) == 4
        assert await ebird_repo.count_observations() == 4

    async def test_missing_observation(self, ebird_repo: EBirdRepository) -> None:
        assert await ebird_repo.get_observation("nope", "S0") is None


class TestRssRepository:
    async def test_source_roundtrip(self, rss_repo: RssRepository, rss_source: RssSource) -> None:
        await rss_repo.upsert_source(rss_source)
        assert await rss_repo.get_source("aba") == rss_source
        assert await rss_repo.get_source("missing") is None

    async def test_source_update(self, rss_repo: RssRepository, rss_source: RssSource) -> None:
        await rss_repo.upsert_source(rss_source)
        await rss_repo.upsert_source(RssSource(id="aba", name="Renamed", url=rss_source.url))
        assert (await rss_repo.get_source("aba")).name == "Renamed"

    async def test_item_upsert_keeps_created_at(
        self,
        rss_repo: RssRepository,
        db: Database,
        rss_source: RssSource,
        make_rss_item: Callable[..., RssItem],
    ) -> None:
        await rss_repo.upsert_source(rss_source)
        await rss_repo.upsert_item(make_rss_item("g1", title="First"))
        with db.session() as session:
            created = session.get(RssItemModel, "g1").created_at

        assert await rss_repo.upsert_items([make_rss_item("g1", title="Edited")]) == 1
        with db.session() as session:
            stored = session.get(RssItemModel, "g1")
            assert stored.title == "Edited"
            assert stored.created_at == created

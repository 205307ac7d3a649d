"""Undelivered-item queries.

Each query computes, in one statement, every (channel, item) pair where the
item is new enough, matches an active subscription of the channel, is not
excluded by the channel's filters, and has no delivery-ledger row:

    items
      JOIN locations
      JOIN subscriptions   ON active AND state = state AND (county = county OR county = '*')
      LEFT JOIN filters    ON channel AND name key
      LEFT JOIN deliveries ON kind AND alert id AND channel
    WHERE filters IS NULL AND deliveries IS NULL [AND created_at >= :since]

Rows carry denormalized location fields so rendering needs no second trip.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import and_, literal, or_, select

from scrubjay.models.base import AlertKind
from scrubjay.models.dispatch import DispatchableObservation, DispatchableRssItem
from scrubjay.models.scope import WILDCARD
from scrubjay.storage.models import (
    DeliveryModel,
    EBirdSubscriptionModel,
    FilteredSpeciesModel,
    LocationModel,
    ObservationModel,
    RssItemModel,
    RssSourceModel,
    RssSubscriptionModel,
)

if TYPE_CHECKING:
    from scrubjay.storage.database import Database

logger = logging.getLogger(__name__)


def observation_alert_id_expr() -> Any:
    """SQL expression for ``species_code || ':' || sub_id``."""
    return ObservationModel.species_code + literal(":") + ObservationModel.sub_id


def region_match_clause() -> Any:
    """Subscription-to-location predicate: same state, and same county or wildcard."""
    return and_(
        EBirdSubscriptionModel.active.is_(True),
        EBirdSubscriptionModel.state_code == LocationModel.state_code,
        or_(
            EBirdSubscriptionModel.county_code == LocationModel.county_code,
            EBirdSubscriptionModel.county_code == WILDCARD,
        ),
    )


def species_filter_join() -> Any:
    return and_(
        FilteredSpeciesModel.channel_id == EBirdSubscriptionModel.channel_id,
        FilteredSpeciesModel.common_name_key == ObservationModel.common_name_key,
    )


def observation_delivery_join() -> Any:
    return and_(
        DeliveryModel.alert_kind == AlertKind.EBIRD.value,
        DeliveryModel.alert_id == observation_alert_id_expr(),
        DeliveryModel.channel_id == EBirdSubscriptionModel.channel_id,
    )


def rss_delivery_join() -> Any:
    return and_(
        DeliveryModel.alert_kind == AlertKind.RSS.value,
        DeliveryModel.alert_id == RssItemModel.id,
        DeliveryModel.channel_id == RssSubscriptionModel.channel_id,
    )


class DispatchRepository:
    """Set-based queries feeding the dispatchers."""

    def __init__(self, db: Database) -> None:
        self._db = db

    async def undelivered_observations(
        self, since: datetime | None = None
    ) -> list[DispatchableObservation]:
        """Undelivered (channel, observation) pairs created at or after ``since``."""
        stmt = (
            select(
                EBirdSubscriptionModel.channel_id,
                ObservationModel.species_code,
                ObservationModel.sub_id,
                ObservationModel.common_name,
                ObservationModel.scientific_name,
                ObservationModel.location_id,
                LocationModel.name.label("location_name"),
                LocationModel.county,
                LocationModel.state,
                LocationModel.is_private,
                ObservationModel.observed_at,
                ObservationModel.created_at,
                ObservationModel.how_many,
                ObservationModel.photo_count,
                ObservationModel.audio_count,
                ObservationModel.video_count,
            )
            .select_from(ObservationModel)
            .join(LocationModel, LocationModel.id == ObservationModel.location_id)
            .join(EBirdSubscriptionModel, region_match_clause())
            .outerjoin(FilteredSpeciesModel, species_filter_join())
            .outerjoin(DeliveryModel, observation_delivery_join())
            .where(FilteredSpeciesModel.channel_id.is_(None))
            .where(DeliveryModel.alert_id.is_(None))
            .distinct()
            .order_by(ObservationModel.created_at, ObservationModel.observed_at)
        )
        if since is not None:
            stmt = stmt.where(ObservationModel.created_at >= since)

        with self._db.session() as session:
            rows = session.execute(stmt).mappings().all()
        return [DispatchableObservation.model_validate(dict(row)) for row in rows]

    async def undelivered_rss_items(
        self, since: datetime | None = None
    ) -> list[DispatchableRssItem]:
        """Undelivered (channel, feed item) pairs created at or after ``since``."""
        stmt = (
            select(
                RssSubscriptionModel.channel_id,
                RssItemModel.id,
                RssSourceModel.name.label("source_name"),
                RssItemModel.title,
                RssItemModel.description,
                RssItemModel.content_html,
                RssItemModel.link,
                RssItemModel.published_at,
            )
            .select_from(RssItemModel)
            .join(
                RssSubscriptionModel,
                and_(
                    RssSubscriptionModel.active.is_(True),
                    RssSubscriptionModel.source_id == RssItemModel.source_id,
                ),
            )
            .outerjoin(RssSourceModel, RssSourceModel.id == RssItemModel.source_id)
            .outerjoin(DeliveryModel, rss_delivery_join())
            .where(DeliveryModel.alert_id.is_(None))
            .order_by(RssItemModel.created_at)
        )
        if since is not None:
            stmt = stmt.where(RssItemModel.created_at >= since)

        with self._db.session() as session:
            rows = session.execute(stmt).mappings().all()
        return [DispatchableRssItem.model_validate(dict(row)) for row in rows]

    async def confirmed_species_locations(self, since: datetime) -> set[tuple[str, str]]:
        """(species_code, location_id) pairs with a valid, reviewed sighting after ``since``.

        ``observed_at`` is naive site-local time, so an aware ``since`` is
        compared by its wall-clock value. The window is therefore accurate to
        within the site's UTC offset, which is fine for a days-long window.
        """
        cutoff = since.replace(tzinfo=None)
        stmt = (
            select(ObservationModel.species_code, ObservationModel.location_id)
            .where(
                and_(
                    ObservationModel.observed_at > cutoff,
                    ObservationModel.is_valid.is_(True),
                    ObservationModel.is_reviewed.is_(True),
                )
            )
            .distinct()
        )
        with self._db.session() as session:
            return {(species, loc) for species, loc in session.execute(stmt).all()}

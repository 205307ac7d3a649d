"""Subscription storage.

Subscribing is insert-or-reactivate plus a backfill that marks every
already-ingested matching item as delivered to the new channel, both in a
single transaction. A crash in between can therefore never leave an active
subscription without its backfill, which would flood the channel on the
next dispatch cycle.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import and_, select, update

from scrubjay.models.base import AlertKind, normalize_content_key, utcnow
from scrubjay.models.dispatch import DeliveryKey
from scrubjay.models.ebird import observation_alert_id
from scrubjay.models.scope import Scope, WholeRegion, scope_from_columns
from scrubjay.storage.deliveries import DEFAULT_BATCH_SIZE, insert_deliveries
from scrubjay.storage.dispatch import (
    observation_delivery_join,
    region_match_clause,
    rss_delivery_join,
    species_filter_join,
)
from scrubjay.storage.models import (
    DeliveryModel,
    EBirdSubscriptionModel,
    FilteredSpeciesModel,
    LocationModel,
    ObservationModel,
    RssItemModel,
    RssSubscriptionModel,
)

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from scrubjay.storage.database import Database

logger = logging.getLogger(__name__)


class SubscriptionRepository:
    """Channel subscriptions, their backfill, and channel resolution."""

    def __init__(self, db: Database, batch_size: int = DEFAULT_BATCH_SIZE) -> None:
        self._db = db
        self._batch_size = batch_size

    # =========================================================================
    # eBird
    # =========================================================================

    async def insert_ebird_subscription(self, channel_id: str, scope: Scope) -> int:
        """Subscribe a channel to a scope and backfill the ledger.

        Idempotent: re-subscribing reactivates the row and inserts no
        duplicate deliveries.

        Returns:
            Number of existing observations marked as delivered.
        """
        now = utcnow()
        with self._db.session() as session:
            stmt = self._db.insert(EBirdSubscriptionModel).values(
                channel_id=channel_id,
                state_code=scope.region,
                county_code=scope.subregion_code,
                active=True,
                last_updated=now,
            )
            session.execute(
                stmt.on_conflict_do_update(
                    index_elements=["channel_id", "state_code", "county_code"],
                    set_={"active": True, "last_updated": now},
                )
            )
            keys = self._ebird_backfill_keys(session, channel_id, scope)
            backfilled = insert_deliveries(self._db, session, keys, self._batch_size)

        logger.info(f"Channel {channel_id} subscribed to {scope}; backfilled {backfilled} deliveries")
        return backfilled

    def _ebird_backfill_keys(
        self, session: Session, channel_id: str, scope: Scope
    ) -> list[DeliveryKey]:
        """Undelivered observations matching exactly this subscription."""
        stmt = (
            select(ObservationModel.species_code, ObservationModel.sub_id)
            .select_from(ObservationModel)
            .join(LocationModel, LocationModel.id == ObservationModel.location_id)
            .join(
                EBirdSubscriptionModel,
                and_(
                    region_match_clause(),
                    EBirdSubscriptionModel.channel_id == channel_id,
                    EBirdSubscriptionModel.state_code == scope.region,
                    EBirdSubscriptionModel.county_code == scope.subregion_code,
                ),
            )
            .outerjoin(FilteredSpeciesModel, species_filter_join())
            .outerjoin(DeliveryModel, observation_delivery_join())
            .where(FilteredSpeciesModel.channel_id.is_(None))
            .where(DeliveryModel.alert_id.is_(None))
        )
        return [
            DeliveryKey(AlertKind.EBIRD, observation_alert_id(species, sub_id), channel_id)
            for species, sub_id in session.execute(stmt).all()
        ]

    async def deactivate_ebird_subscription(self, channel_id: str, scope: Scope) -> bool:
        """Mark a subscription inactive. Returns False if none existed."""
        with self._db.session() as session:
            result = session.execute(
                update(EBirdSubscriptionModel)
                .where(
                    and_(
                        EBirdSubscriptionModel.channel_id == channel_id,
                        EBirdSubscriptionModel.state_code == scope.region,
                        EBirdSubscriptionModel.county_code == scope.subregion_code,
                    )
                )
                .values(active=False, last_updated=utcnow())
            )
            return (result.rowcount or 0) > 0

    async def list_ebird_subscriptions(
        self, channel_id: str | None = None, *, active_only: bool = True
    ) -> list[tuple[str, Scope]]:
        stmt = select(
            EBirdSubscriptionModel.channel_id,
            EBirdSubscriptionModel.state_code,
            EBirdSubscriptionModel.county_code,
        ).order_by(EBirdSubscriptionModel.channel_id, EBirdSubscriptionModel.state_code)
        if channel_id is not None:
            stmt = stmt.where(EBirdSubscriptionModel.channel_id == channel_id)
        if active_only:
            stmt = stmt.where(EBirdSubscriptionModel.active.is_(True))
        with self._db.session() as session:
            rows = session.execute(stmt).all()
        return [(channel, scope_from_columns(state, county)) for channel, state, county in rows]

    async def has_active_ebird_subscription(self, channel_id: str) -> bool:
        with self._db.session() as session:
            row = session.execute(
                select(EBirdSubscriptionModel.channel_id)
                .where(EBirdSubscriptionModel.channel_id == channel_id)
                .where(EBirdSubscriptionModel.active.is_(True))
                .limit(1)
            ).first()
        return row is not None

    async def channels_for_location(
        self, state_code: str, county_code: str, common_name: str
    ) -> set[str]:
        """Channels whose active subscriptions match, minus those filtering the species."""
        key = normalize_content_key(common_name)
        stmt = (
            select(EBirdSubscriptionModel.channel_id)
            .outerjoin(
                FilteredSpeciesModel,
                and_(
                    FilteredSpeciesModel.channel_id == EBirdSubscriptionModel.channel_id,
                    FilteredSpeciesModel.common_name_key == key,
                ),
            )
            .where(EBirdSubscriptionModel.active.is_(True))
            .where(EBirdSubscriptionModel.state_code == state_code)
            .where(
                (EBirdSubscriptionModel.county_code == county_code)
                | (EBirdSubscriptionModel.county_code == WholeRegion(state_code).subregion_code)
            )
            .where(FilteredSpeciesModel.channel_id.is_(None))
            .distinct()
        )
        with self._db.session() as session:
            return set(session.scalars(stmt).all())

    # =========================================================================
    # RSS
    # =========================================================================

    async def insert_rss_subscription(self, channel_id: str, source_id: str) -> int:
        """Subscribe a channel to a feed source and backfill its existing items."""
        with self._db.session() as session:
            stmt = self._db.insert(RssSubscriptionModel).values(
                channel_id=channel_id, source_id=source_id, active=True
            )
            session.execute(
                stmt.on_conflict_do_update(
                    index_elements=["channel_id", "source_id"],
                    set_={"active": True},
                )
            )
            item_ids = session.scalars(
                select(RssItemModel.id)
                .join(
                    RssSubscriptionModel,
                    and_(
                        RssSubscriptionModel.source_id == RssItemModel.source_id,
                        RssSubscriptionModel.channel_id == channel_id,
                    ),
                )
                .outerjoin(DeliveryModel, rss_delivery_join())
                .where(RssItemModel.source_id == source_id)
                .where(DeliveryModel.alert_id.is_(None))
            ).all()
            keys = [DeliveryKey(AlertKind.RSS, item_id, channel_id) for item_id in item_ids]
            backfilled = insert_deliveries(self._db, session, keys, self._batch_size)

        logger.info(f"Channel {channel_id} subscribed to RSS source {source_id}; backfilled {backfilled}")
        return backfilled

    async def deactivate_rss_subscription(self, channel_id: str, source_id: str) -> bool:
        with self._db.session() as session:
            result = session.execute(
                update(RssSubscriptionModel)
                .where(RssSubscriptionModel.channel_id == channel_id)
                .where(RssSubscriptionModel.source_id == source_id)
                .values(active=False)
            )
            return (result.rowcount or 0) > 0

    async def list_rss_subscriptions(self, channel_id: str | None = None) -> list[tuple[str, str]]:
        stmt = (
            select(RssSubscriptionModel.channel_id, RssSubscriptionModel.source_id)
            .where(RssSubscriptionModel.active.is_(True))
            .order_by(RssSubscriptionModel.channel_id)
        )
        if channel_id is not None:
            stmt = stmt.where(RssSubscriptionModel.channel_id == channel_id)
        with self._db.session() as session:
            return [(channel, source) for channel, source in session.execute(stmt).all()]

    async def channels_for_rss_source(self, source_id: str) -> set[str]:
        with self._db.session() as session:
            return set(
                session.scalars(
                    select(RssSubscriptionModel.channel_id)
                    .where(RssSubscriptionModel.source_id == source_id)
                    .where(RssSubscriptionModel.active.is_(True))
                ).all()
            )


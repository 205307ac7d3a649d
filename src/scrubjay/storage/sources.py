"""Which upstream sources need ingesting, derived from active subscriptions."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select

from scrubjay.models.rss import RssSource
from scrubjay.storage.models import EBirdSubscriptionModel, RssSourceModel, RssSubscriptionModel

if TYPE_CHECKING:
    from scrubjay.storage.database import Database


class SourcesRepository:
    def __init__(self, db: Database) -> None:
        self._db = db

    async def ebird_regions(self) -> list[str]:
        """Distinct state codes with at least one active subscription."""
        with self._db.session() as session:
            return list(
                session.scalars(
                    select(EBirdSubscriptionModel.state_code)
                    .where(EBirdSubscriptionModel.active.is_(True))
                    .distinct()
                    .order_by(EBirdSubscriptionModel.state_code)
                ).all()
            )

    async def rss_sources(self, *, subscribed_only: bool = True) -> list[RssSource]:
        """Feed sources, by default only those some channel actively follows."""
        stmt = select(RssSourceModel).order_by(RssSourceModel.id)
        if subscribed_only:
            stmt = stmt.where(
                RssSourceModel.id.in_(
                    select(RssSubscriptionModel.source_id).where(RssSubscriptionModel.active.is_(True))
                )
            )
        with self._db.session() as session:
            return [RssSource.model_validate(model) for model in session.scalars(stmt).all()]

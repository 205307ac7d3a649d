"""RSS source and item storage."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from scrubjay.models.base import utcnow
from scrubjay.models.rss import RssItem, RssSource
from scrubjay.storage.models import RssItemModel, RssSourceModel

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from scrubjay.storage.database import Database

logger = logging.getLogger(__name__)


class RssRepository:
    """Feed sources and their items, upserted by stable id."""

    def __init__(self, db: Database) -> None:
        self._db = db

    async def upsert_source(self, source: RssSource) -> None:
        with self._db.session() as session:
            stmt = self._db.insert(RssSourceModel).values(**source.model_dump())
            session.execute(
                stmt.on_conflict_do_update(
                    index_elements=["id"],
                    set_={"name": stmt.excluded.name, "url": stmt.excluded.url},
                )
            )

    async def get_source(self, source_id: str) -> RssSource | None:
        with self._db.session() as session:
            model = session.get(RssSourceModel, source_id)
            return RssSource.model_validate(model) if model is not None else None

    def _upsert_item(self, session: Session, item: RssItem) -> None:
        now = utcnow()
        values = item.model_dump()
        values.update(created_at=now, last_updated=now)
        stmt = self._db.insert(RssItemModel).values(**values)
        session.execute(
            stmt.on_conflict_do_update(
                index_elements=["id"],
                set_={
                    k: stmt.excluded[k]
                    for k in ("title", "description", "content_html", "link", "published_at", "last_updated")
                },
            )
        )

    async def upsert_item(self, item: RssItem) -> None:
        with self._db.session() as session:
            self._upsert_item(session, item)

    async def upsert_items(self, items: Iterable[RssItem]) -> int:
        count = 0
        with self._db.session() as session:
            for item in items:
                self._upsert_item(session, item)
                count += 1
        return count

"""Per-channel species filters."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import delete, select

from scrubjay.models.base import normalize_content_key
from scrubjay.storage.models import FilteredSpeciesModel

if TYPE_CHECKING:
    from scrubjay.storage.database import Database

logger = logging.getLogger(__name__)


class FilterRepository:
    """Exclusion keys consulted by the undelivered-item query.

    Keys are normalized on write, so ``"Snowy  OWL"`` and ``"snowy owl"``
    are the same filter.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    async def add(self, channel_id: str, common_name: str) -> bool:
        """Add a filter. Returns False if the channel already had it."""
        key = normalize_content_key(common_name)
        with self._db.session() as session:
            stmt = (
                self._db.insert(FilteredSpeciesModel)
                .values(channel_id=channel_id, common_name_key=key, common_name=common_name.strip())
                .on_conflict_do_nothing(index_elements=["channel_id", "common_name_key"])
            )
            result = session.execute(stmt)
            return (result.rowcount or 0) > 0

    async def remove(self, channel_id: str, common_name: str) -> bool:
        """Remove a filter. Returns False if there was nothing to remove."""
        key = normalize_content_key(common_name)
        with self._db.session() as session:
            result = session.execute(
                delete(FilteredSpeciesModel)
                .where(FilteredSpeciesModel.channel_id == channel_id)
                .where(FilteredSpeciesModel.common_name_key == key)
            )
            return (result.rowcount or 0) > 0

    async def list_for_channel(self, channel_id: str) -> list[str]:
        """Filtered common names for a channel, as originally entered."""
        with self._db.session() as session:
            return list(
                session.scalars(
                    select(FilteredSpeciesModel.common_name)
                    .where(FilteredSpeciesModel.channel_id == channel_id)
                    .order_by(FilteredSpeciesModel.common_name_key)
                ).all()
            )

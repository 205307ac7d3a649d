"""
eBird item storage.

Locations and observations are upserted by natural key. Re-ingesting an
observation refreshes its mutable attributes (validity, review status,
media counts) but never its ``created_at``, which stays the dispatch
watermark from first sight.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from sqlalchemy import func, select

from scrubjay.models.base import normalize_content_key, utcnow
from scrubjay.models.ebird import EBirdLocation, EBirdObservation
from scrubjay.storage.models import LocationModel, ObservationModel

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from scrubjay.storage.database import Database

logger = logging.getLogger(__name__)

_MUTABLE_OBSERVATION_FIELDS = (
    "common_name",
    "common_name_key",
    "scientific_name",
    "location_id",
    "observed_at",
    "how_many",
    "is_valid",
    "is_reviewed",
    "presence_noted",
    "has_comments",
    "photo_count",
    "audio_count",
    "video_count",
    "last_updated",
)


class EBirdRepository:
    """Idempotent writes of ingested eBird data."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def _upsert_location(self, session: Session, location: EBirdLocation) -> None:
        values = location.model_dump()
        values["last_updated"] = utcnow()
        stmt = self._db.insert(LocationModel).values(**values)
        session.execute(
            stmt.on_conflict_do_update(
                index_elements=["id"],
                set_={k: stmt.excluded[k] for k in values if k != "id"},
            )
        )

    def _upsert_observation(self, session: Session, observation: EBirdObservation) -> None:
        now = utcnow()
        values = observation.model_dump(exclude={"location"})
        values.update(
            common_name_key=normalize_content_key(observation.common_name),
            location_id=observation.location.id,
            created_at=now,
            last_updated=now,
        )
        stmt = self._db.insert(ObservationModel).values(**values)
        session.execute(
            stmt.on_conflict_do_update(
                index_elements=["species_code", "sub_id"],
                set_={k: stmt.excluded[k] for k in _MUTABLE_OBSERVATION_FIELDS},
            )
        )

    async def upsert_location(self, location: EBirdLocation) -> None:
        with self._db.session() as session:
            self._upsert_location(session, location)

    async def upsert_observation(self, observation: EBirdObservation) -> None:
        """Upsert one observation together with its location."""
        with self._db.session() as session:
            self._upsert_location(session, observation.location)
            self._upsert_observation(session, observation)

    async def upsert_observations(self, observations: Iterable[EBirdObservation]) -> int:
        """Upsert a batch in one transaction. Returns the number processed."""
        count = 0
        with self._db.session() as session:
            seen_locations: set[str] = set()
            for observation in observations:
                if observation.location.id not in seen_locations:
                    self._upsert_location(session, observation.location)
                    seen_locations.add(observation.location.id)
                self._upsert_observation(session, observation)
                count += 1
        return count

    async def get_observation(self, species_code: str, sub_id: str) -> ObservationModel | None:
        with self._db.session() as session:
            return session.get(ObservationModel, (species_code, sub_id))

    async def count_observations(self) -> int:
        with self._db.session() as session:
            return session.scalar(select(func.count()).select_from(ObservationModel)) or 0

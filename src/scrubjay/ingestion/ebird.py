"""eBird ingestion.

Pulls the "recent notable observations" list for every subscribed state,
merges duplicate rows and upserts the result.

Example:
    >>> from scrubjay.ingestion.ebird import EBirdTransformer
    >>> from scrubjay.models.ebird import RawEBirdObservation
    >>> row = {
    ...     "speciesCode": "snoowl1", "comName": "Snowy Owl", "sciName": "Bubo scandiacus",
    ...     "locId": "L1", "locName": "Pier", "obsDt": "2024-01-15 08:30",
    ...     "lat": 37.0, "lng": -122.0, "obsValid": True, "obsReviewed": False,
    ...     "locationPrivate": False, "subId": "S1",
    ...     "subnational2Code": "US-CA-037", "subnational2Name": "Los Angeles",
    ...     "subnational1Code": "US-CA", "subnational1Name": "California",
    ...     "countryCode": "US", "countryName": "United States",
    ...     "obsId": "OBS1", "checklistId": "CL1", "presenceNoted": False,
    ...     "hasComments": False, "evidence": "P",
    ... }
    >>> raw = [RawEBirdObservation.model_validate(row), RawEBirdObservation.model_validate(row)]
    >>> [obs.photo_count for obs in EBirdTransformer().transform(raw)]
    [2]
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError as PydanticValidationError

from scrubjay.core.exceptions import (
    ConfigurationError,
    IngestionError,
    StorageError,
    StorageUnavailableError,
)
from scrubjay.http.client import HttpClient, HttpClientError
from scrubjay.models.base import AlertKind
from scrubjay.models.ebird import EBirdLocation, EBirdObservation, RawEBirdObservation

if TYPE_CHECKING:
    from scrubjay.storage.ebird import EBirdRepository
    from scrubjay.storage.sources import SourcesRepository

logger = logging.getLogger(__name__)


class EBirdFetcher:
    """Fetches notable observations from the eBird API.

    Args:
        client: HTTP client whose ``base_url`` is the eBird API root.
        token: eBird API token.
        back_days: How many days back to request (1-30).
    """

    def __init__(self, client: HttpClient, token: str | None, back_days: int = 7) -> None:
        self._client = client
        self._token = token
        self._back_days = back_days

    async def fetch_notable(self, region_code: str) -> list[RawEBirdObservation]:
        """Recent notable observations for one region.

        Rows that fail validation are logged and dropped.

        Raises:
            ConfigurationError: If no API token is configured.
            IngestionError: If the request fails.
        """
        if not self._token:
            raise ConfigurationError("SCRUBJAY_EBIRD_TOKEN is not set")

        try:
            data: Any = await self._client.get_json(
                f"/v2/data/obs/{region_code}/recent/notable",
                params={"back": self._back_days, "detail": "full"},
                headers={"X-eBirdApiToken": self._token},
            )
        except HttpClientError as e:
            raise IngestionError(
                f"Failed to fetch observations for {region_code}: {e}",
                source=region_code,
                cause=e,
            ) from e

        if not isinstance(data, list):
            raise IngestionError(f"Unexpected eBird response for {region_code}", source=region_code)

        rows: list[RawEBirdObservation] = []
        for item in data:
            try:
                rows.append(RawEBirdObservation.model_validate(item))
            except PydanticValidationError as e:
                logger.warning(f"Skipping malformed eBird row in {region_code}: {e.error_count()} errors")
        logger.info(f"Fetched {len(rows)} observations from {region_code}")
        return rows


class EBirdTransformer:
    """Collapses raw rows into normalized observations.

    The API returns one row per piece of evidence, so a single checklist
    entry with two photos arrives twice. Rows sharing (species, checklist)
    merge into one observation with summed media counts.
    """

    @staticmethod
    def _media_counts(raw: RawEBirdObservation) -> dict[str, int]:
        return {
            "photo_count": int(raw.evidence == "P"),
            "audio_count": int(raw.evidence == "A"),
            "video_count": int(raw.evidence == "V"),
        }

    @staticmethod
    def extract_location(raw: RawEBirdObservation) -> EBirdLocation:
        return EBirdLocation(
            id=raw.loc_id,
            name=raw.loc_name,
            county=raw.subnational2_name,
            county_code=raw.subnational2_code,
            state=raw.subnational1_name,
            state_code=raw.subnational1_code,
            country_code=raw.country_code,
            lat=raw.lat,
            lng=raw.lng,
            is_private=raw.location_private,
        )

    def transform(self, raw: Iterable[RawEBirdObservation]) -> list[EBirdObservation]:
        merged: dict[str, dict[str, Any]] = {}
        for row in raw:
            media = self._media_counts(row)
            existing = merged.get(row.alert_id)
            if existing is None:
                merged[row.alert_id] = {
                    "species_code": row.species_code,
                    "sub_id": row.sub_id,
                    "common_name": row.com_name,
                    "scientific_name": row.sci_name,
                    "observed_at": row.obs_dt,
                    "how_many": row.how_many or 0,
                    "is_valid": row.obs_valid,
                    "is_reviewed": row.obs_reviewed,
                    "presence_noted": row.presence_noted,
                    "has_comments": row.has_comments,
                    "location": self.extract_location(row),
                    **media,
                }
                continue
            for key, count in media.items():
                existing[key] += count
            existing["presence_noted"] = existing["presence_noted"] or row.presence_noted
        return [EBirdObservation.model_validate(values) for values in merged.values()]


class EBirdService:
    """Ingestion service for eBird notable observations."""

    def __init__(
        self,
        fetcher: EBirdFetcher,
        repository: EBirdRepository,
        sources: SourcesRepository,
        transformer: EBirdTransformer | None = None,
    ) -> None:
        self._fetcher = fetcher
        self._repository = repository
        self._sources = sources
        self._transformer = transformer or EBirdTransformer()

    @property
    def kind(self) -> AlertKind:
        return AlertKind.EBIRD

    async def ingest_region(self, region_code: str) -> int:
        """Fetch, merge and upsert one region. Returns observations stored."""
        raw = await self._fetcher.fetch_notable(region_code)
        observations = self._transformer.transform(raw)

        stored = 0
        for observation in observations:
            try:
                await self._repository.upsert_observation(observation)
                stored += 1
            except StorageUnavailableError:
                raise
            except StorageError as e:
                logger.warning(f"Failed to store observation {observation.alert_id}: {e}")
        logger.info(f"Ingested {stored} / {len(observations)} observations for {region_code}")
        return stored

    async def ingest_all(self) -> int:
        regions = await self._sources.ebird_regions()
        total = 0
        for region in regions:
            try:
                total += await self.ingest_region(region)
            except StorageUnavailableError:
                raise
            except (IngestionError, ConfigurationError) as e:
                logger.error(f"eBird ingestion failed for {region}: {e}")
            except Exception:
                logger.exception(f"Unexpected error ingesting eBird region {region}")
        return total

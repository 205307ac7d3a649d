"""eBird observation and location models.

``RawEBirdObservation`` mirrors one row of the eBird "recent notable
observations" response (camelCase aliases). The transformer collapses raw
rows into :class:`EBirdObservation`, which carries its :class:`EBirdLocation`.

Example:
    >>> from scrubjay.models.ebird import RawEBirdObservation
    >>> raw = RawEBirdObservation.model_validate({
    ...     "speciesCode": "snoowl1", "comName": "Snowy Owl", "sciName": "Bubo scandiacus",
    ...     "locId": "L1", "locName": "Pier", "obsDt": "2024-01-15 08:30",
    ...     "lat": 37.0, "lng": -122.0, "obsValid": True, "obsReviewed": False,
    ...     "locationPrivate": False, "subId": "S1",
    ...     "subnational2Code": "US-CA-037", "subnational2Name": "Los Angeles",
    ...     "subnational1Code": "US-CA", "subnational1Name": "California",
    ...     "countryCode": "US", "countryName": "United States",
    ...     "obsId": "OBS1", "checklistId": "CL1", "presenceNoted": False,
    ...     "hasComments": False, "hasRichMedia": False,
    ... })
    >>> raw.alert_id
    'snoowl1:S1'
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from scrubjay.models.base import ScrubJayModel


_OBS_DT_FORMATS = ("%Y-%m-%d %H:%M", "%Y-%m-%d")


def parse_obs_dt(value: str) -> datetime:
    """Parse eBird's ``obsDt`` (local time, minute or day precision).

    Example:
        >>> parse_obs_dt("2024-01-15 08:30")
        datetime.datetime(2024, 1, 15, 8, 30)
        >>> parse_obs_dt("2024-01-15")
        datetime.datetime(2024, 1, 15, 0, 0)
    """
    for fmt in _OBS_DT_FORMATS:
        try:
            return datetime.strptime(value.strip(), fmt)
        except ValueError:
            continue
    raise ValueError(f"Unrecognized obsDt: {value!r}")


def observation_alert_id(species_code: str, sub_id: str) -> str:
    """Delivery-ledger key for an observation."""
    return f"{species_code}:{sub_id}"


class RawEBirdObservation(BaseModel):
    """One row from the eBird API, validated at the ingestion boundary."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    species_code: str
    com_name: str
    sci_name: str
    loc_id: str
    loc_name: str
    obs_dt: datetime
    how_many: int | None = None
    lat: float
    lng: float
    obs_valid: bool
    obs_reviewed: bool
    location_private: bool
    sub_id: str
    subnational2_code: str = ""
    subnational2_name: str = ""
    subnational1_code: str
    subnational1_name: str
    country_code: str
    country_name: str
    user_display_name: str = ""
    obs_id: str
    checklist_id: str
    presence_noted: bool
    has_comments: bool
    evidence: Literal["P", "A", "V"] | None = None
    has_rich_media: bool = False

    @field_validator("obs_dt", mode="before")
    @classmethod
    def _parse_obs_dt(cls, value: object) -> object:
        # naive local time at the observation site
        if isinstance(value, str):
            return parse_obs_dt(value)
        return value

    @property
    def alert_id(self) -> str:
        return observation_alert_id(self.species_code, self.sub_id)


class EBirdLocation(ScrubJayModel):
    """A location with its place in the country > state > county hierarchy."""

    id: str = Field(..., min_length=1)
    name: str
    county: str = ""
    county_code: str = ""
    state: str
    state_code: str
    country_code: str
    lat: float
    lng: float
    is_private: bool = False


class EBirdObservation(ScrubJayModel):
    """A normalized observation, unique on (species_code, sub_id)."""

    species_code: str
    sub_id: str
    common_name: str
    scientific_name: str
    observed_at: datetime
    how_many: int = 0
    is_valid: bool
    is_reviewed: bool
    presence_noted: bool = False
    has_comments: bool = False
    photo_count: int = Field(default=0, ge=0)
    audio_count: int = Field(default=0, ge=0)
    video_count: int = Field(default=0, ge=0)
    location: EBirdLocation

    @property
    def alert_id(self) -> str:
        return observation_alert_id(self.species_code, self.sub_id)

"""Dispatch models: undelivered rows, ledger keys, batches and cycle results.

Example:
    >>> from scrubjay.models.base import AlertKind
    >>> from scrubjay.models.dispatch import DeliveryKey, DispatchResult
    >>> DeliveryKey(AlertKind.RSS, "guid-1", "chan-1").kind
    <AlertKind.RSS: 'rss'>
    >>> DispatchResult(kind=AlertKind.EBIRD, candidates=4, recorded=3).delivery_rate
    0.75
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Generic, NamedTuple, TypeVar

from scrubjay.models.base import AlertKind, ScrubJayModel, utcnow
from scrubjay.models.ebird import observation_alert_id


class DeliveryKey(NamedTuple):
    """Identity of one delivery-ledger row."""

    kind: AlertKind
    alert_id: str
    channel_id: str


class DispatchableObservation(ScrubJayModel):
    """An undelivered (channel, observation) pair with denormalized location."""

    channel_id: str
    species_code: str
    sub_id: str
    common_name: str
    scientific_name: str
    location_id: str
    location_name: str
    county: str
    state: str
    is_private: bool
    observed_at: datetime
    created_at: datetime
    how_many: int = 0
    photo_count: int = 0
    audio_count: int = 0
    video_count: int = 0

    @property
    def alert_id(self) -> str:
        return observation_alert_id(self.species_code, self.sub_id)


class DispatchableRssItem(ScrubJayModel):
    """An undelivered (channel, feed item) pair."""

    channel_id: str
    id: str
    source_name: str | None = None
    title: str | None = None
    description: str | None = None
    content_html: str | None = None
    link: str | None = None
    published_at: datetime | None = None

    @property
    def alert_id(self) -> str:
        return self.id


RowT = TypeVar("RowT", DispatchableObservation, DispatchableRssItem)


@dataclass
class AlertBatch(Generic[RowT]):
    """Rows that render into one message for one channel."""

    channel_id: str
    rows: list[RowT]
    confirmed: bool = False


@dataclass
class DispatchResult:
    """Outcome of one dispatch cycle for one kind.

    ``candidates`` counts undelivered (channel, item) pairs found;
    ``recorded`` counts pairs written to the ledger. A persistent gap
    between the two means sends are failing.
    """

    kind: AlertKind
    candidates: int = 0
    batches: int = 0
    sent: int = 0
    failed: int = 0
    recorded: int = 0
    skipped: bool = False
    started_at: datetime = field(default_factory=utcnow)
    failed_channels: list[str] = field(default_factory=list)

    @property
    def delivery_rate(self) -> float:
        if self.candidates == 0:
            return 0.0
        return self.recorded / self.candidates

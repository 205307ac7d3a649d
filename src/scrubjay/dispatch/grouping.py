"""Grouping and aggregation of undelivered observations.

Several raw reports of one species at one location inside a dispatch
window become a single alert per channel.

Example:
    >>> from scrubjay.dispatch.grouping import species_location_id
    >>> species_location_id("snoowl1", "L123")
    'snoowl1-L123'
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime

from scrubjay.models.dispatch import DispatchableObservation

BucketKey = tuple[str, str]
"""(species_code, location_id)"""

GroupedObservations = dict[str, dict[BucketKey, list[DispatchableObservation]]]


@dataclass(frozen=True)
class ObservationSummary:
    """Aggregate of one (channel, species, location) bucket."""

    total_reports: int
    total_photos: int
    total_audio: int
    total_videos: int
    how_many: int
    latest_observed_at: datetime
    latest_sub_id: str


def species_location_id(species_code: str, location_id: str) -> str:
    return f"{species_code}-{location_id}"


def group_observations(rows: Iterable[DispatchableObservation]) -> GroupedObservations:
    """Group rows by channel, then by (species, location).

    Both levels keep first-seen order, so output is deterministic for a
    given query result.
    """
    grouped: GroupedObservations = {}
    for row in rows:
        buckets = grouped.setdefault(row.channel_id, {})
        buckets.setdefault((row.species_code, row.location_id), []).append(row)
    return grouped


def aggregate_observations(rows: Sequence[DispatchableObservation]) -> ObservationSummary:
    """Summarize a non-empty bucket.

    Example:
        >>> from datetime import datetime
        >>> from scrubjay.models.dispatch import DispatchableObservation
        >>> def row(sub, photos, hour):
        ...     return DispatchableObservation(
        ...         channel_id="c", species_code="snoowl1", sub_id=sub,
        ...         common_name="Snowy Owl", scientific_name="Bubo scandiacus",
        ...         location_id="L1", location_name="Pier", county="Los Angeles",
        ...         state="California", is_private=False,
        ...         observed_at=datetime(2024, 1, 15, hour), created_at=datetime(2024, 1, 15, 12),
        ...         photo_count=photos,
        ...     )
        >>> s = aggregate_observations([row("S1", 1, 8), row("S2", 0, 7), row("S3", 2, 9)])
        >>> (s.total_reports, s.total_photos, s.latest_observed_at.hour, s.latest_sub_id)
        (3, 3, 9, 'S3')
    """
    if not rows:
        raise ValueError("Cannot aggregate an empty bucket")
    latest = max(rows, key=lambda r: r.observed_at)
    return ObservationSummary(
        total_reports=len(rows),
        total_photos=sum(r.photo_count for r in rows),
        total_audio=sum(r.audio_count for r in rows),
        total_videos=sum(r.video_count for r in rows),
        how_many=max(r.how_many for r in rows),
        latest_observed_at=latest.observed_at,
        latest_sub_id=latest.sub_id,
    )

"""eBird dispatcher: one alert per (channel, species, location)."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from scrubjay.dispatch.base import DEFAULT_LOOKBACK, BaseDispatcher
from scrubjay.dispatch.grouping import (
    ObservationSummary,
    aggregate_observations,
    group_observations,
    species_location_id,
)
from scrubjay.models.base import AlertKind, utcnow
from scrubjay.models.dispatch import AlertBatch, DispatchableObservation
from scrubjay.protocols.notification import Notification, NotificationField

if TYPE_CHECKING:
    from scrubjay.protocols.notification import Notifier
    from scrubjay.storage.deliveries import DeliveryLedger
    from scrubjay.storage.dispatch import DispatchRepository

logger = logging.getLogger(__name__)

CONFIRMED_COLOR = 0x2ECC71
UNCONFIRMED_COLOR = 0xF1C40F


def format_report_time(value: datetime) -> str:
    """``1/15/2024, 8:30 AM`` style timestamp.

    Example:
        >>> from datetime import datetime
        >>> format_report_time(datetime(2024, 1, 15, 20, 5))
        '1/15/2024, 8:05 PM'
    """
    hour = value.hour % 12 or 12
    meridiem = "AM" if value.hour < 12 else "PM"
    return f"{value.month}/{value.day}/{value.year}, {hour}:{value.minute:02d} {meridiem}"


def media_text(summary: ObservationSummary) -> str | None:
    parts = []
    if summary.total_photos:
        parts.append(f"📷 {summary.total_photos} photo(s)")
    if summary.total_audio:
        parts.append(f"🔊 {summary.total_audio} audio")
    if summary.total_videos:
        parts.append(f"🎥 {summary.total_videos} video(s)")
    return " • ".join(parts) or None


class EBirdDispatcher(BaseDispatcher[DispatchableObservation]):
    """Groups observations by species and location before sending."""

    def __init__(
        self,
        repository: DispatchRepository,
        notifier: Notifier,
        ledger: DeliveryLedger,
        lookback: timedelta = DEFAULT_LOOKBACK,
        confirmed_window: timedelta = timedelta(days=7),
    ) -> None:
        super().__init__(notifier, ledger, lookback)
        self._repository = repository
        self._confirmed_window = confirmed_window

    @property
    def kind(self) -> AlertKind:
        return AlertKind.EBIRD

    async def get_undelivered(self, since: datetime | None = None) -> Sequence[DispatchableObservation]:
        return await self._repository.undelivered_observations(since)

    async def confirmed_keys(self) -> set[str]:
        """Species/location ids with a valid, reviewed report inside the window."""
        pairs = await self._repository.confirmed_species_locations(utcnow() - self._confirmed_window)
        return {species_location_id(species, loc) for species, loc in pairs}

    async def build_batches(
        self, rows: Sequence[DispatchableObservation]
    ) -> list[AlertBatch[DispatchableObservation]]:
        confirmed = await self.confirmed_keys()
        batches = []
        for channel_id, buckets in group_observations(rows).items():
            for (species_code, location_id), bucket in buckets.items():
                batches.append(
                    AlertBatch(
                        channel_id=channel_id,
                        rows=bucket,
                        confirmed=species_location_id(species_code, location_id) in confirmed,
                    )
                )
        return batches

    def render(self, batch: AlertBatch[DispatchableObservation]) -> Notification:
        first = batch.rows[0]
        summary = aggregate_observations(batch.rows)

        if first.is_private:
            location_text = "a private location"
        else:
            location_text = f"[{first.location_name}](https://ebird.org/hotspot/{first.location_id})"

        details = f"👥 {summary.total_reports} new report(s); " + (
            "confirmed at location in the last week"
            if batch.confirmed
            else "unconfirmed at location in the last week"
        )
        media = media_text(summary)
        if media:
            details += f"\n{media}"

        title = first.common_name if not first.county else f"{first.common_name} - {first.county}"
        return Notification(
            title=title,
            url=f"https://ebird.org/checklist/{summary.latest_sub_id}",
            description=(
                f"Reported at {location_text}\n"
                f"Latest report: {format_report_time(summary.latest_observed_at)}"
            ),
            color=CONFIRMED_COLOR if batch.confirmed else UNCONFIRMED_COLOR,
            fields=[NotificationField(name="Details", value=details)],
        )

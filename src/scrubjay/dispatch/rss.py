"""RSS dispatcher: one message per (channel, item)."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from scrubjay.dispatch.base import DEFAULT_LOOKBACK, BaseDispatcher
from scrubjay.models.base import AlertKind
from scrubjay.models.dispatch import AlertBatch, DispatchableRssItem
from scrubjay.protocols.notification import Notification, NotificationField

if TYPE_CHECKING:
    from scrubjay.protocols.notification import Notifier
    from scrubjay.storage.deliveries import DeliveryLedger
    from scrubjay.storage.dispatch import DispatchRepository

logger = logging.getLogger(__name__)

RSS_COLOR = 0x3498DB
MAX_FIELD_LENGTH = 1024


def truncate_description(description: str, link: str | None, limit: int = MAX_FIELD_LENGTH) -> str:
    """Fit ``description`` in one embed field, ending with a link when cut.

    Example:
        >>> truncate_description("short", "https://example.com")
        'short'
        >>> text = truncate_description("x" * 2000, "https://e.com")
        >>> len(text) <= 1024, text.endswith("[Read more](https://e.com)")
        (True, True)
    """
    if len(description) <= limit:
        return description
    read_more = f"\n\n[Read more]({link})" if link else ""
    cut = limit - len(read_more) - 3
    return f"{description[:cut]}...{read_more}"


class RssDispatcher(BaseDispatcher[DispatchableRssItem]):
    def __init__(
        self,
        repository: DispatchRepository,
        notifier: Notifier,
        ledger: DeliveryLedger,
        lookback: timedelta = DEFAULT_LOOKBACK,
    ) -> None:
        super().__init__(notifier, ledger, lookback)
        self._repository = repository

    @property
    def kind(self) -> AlertKind:
        return AlertKind.RSS

    async def get_undelivered(self, since: datetime | None = None) -> Sequence[DispatchableRssItem]:
        return await self._repository.undelivered_rss_items(since)

    async def build_batches(
        self, rows: Sequence[DispatchableRssItem]
    ) -> list[AlertBatch[DispatchableRssItem]]:
        return [AlertBatch(channel_id=row.channel_id, rows=[row]) for row in rows]

    def render(self, batch: AlertBatch[DispatchableRssItem]) -> Notification:
        item = batch.rows[0]
        fields = []
        if item.description:
            fields.append(
                NotificationField(
                    name="Description",
                    value=truncate_description(item.description, item.link),
                )
            )
        return Notification(
            title=item.source_name,
            description=item.title,
            url=item.link,
            color=RSS_COLOR,
            fields=fields,
            timestamp=item.published_at,
        )

"""
Subscription management and channel resolution.

Region codes are parsed at this boundary; malformed codes never reach
storage. Subscribing backfills the delivery ledger so a new channel only
hears about items ingested after it joined.

Example:
    from scrubjay.services import SubscriptionService

    service = SubscriptionService(subscriptions)
    await service.subscribe_ebird("1234", "US-CA-037")   # one county
    await service.subscribe_ebird("1234", "US-CA")       # every county in CA
    await service.unsubscribe_ebird("1234", "US-CA-037")
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from scrubjay.core.exceptions import NotFoundError
from scrubjay.models.scope import Scope, parse_region_code

if TYPE_CHECKING:
    from scrubjay.storage.rss import RssRepository
    from scrubjay.storage.subscriptions import SubscriptionRepository

logger = logging.getLogger(__name__)


class SubscriptionService:
    """Subscribe and unsubscribe channels to eBird regions and RSS sources."""

    def __init__(
        self,
        subscriptions: SubscriptionRepository,
        rss: RssRepository | None = None,
    ) -> None:
        self._subscriptions = subscriptions
        self._rss = rss

    async def subscribe_ebird(self, channel_id: str, region_code: str) -> Scope:
        """Subscribe ``channel_id`` to a state (``US-CA``) or county (``US-CA-037``).

        Raises:
            InvalidRegionCodeError: If the code has other than 2 or 3 parts.
        """
        scope = parse_region_code(region_code)
        await self._subscriptions.insert_ebird_subscription(channel_id, scope)
        return scope

    async def unsubscribe_ebird(self, channel_id: str, region_code: str) -> bool:
        scope = parse_region_code(region_code)
        removed = await self._subscriptions.deactivate_ebird_subscription(channel_id, scope)
        if removed:
            logger.info(f"Channel {channel_id} unsubscribed from {scope}")
        return removed

    async def subscribe_rss(self, channel_id: str, source_id: str) -> int:
        """Subscribe to a known RSS source. Returns the number of backfilled items.

        Raises:
            NotFoundError: If the source has not been registered.
        """
        if self._rss is not None and await self._rss.get_source(source_id) is None:
            raise NotFoundError(f"Unknown RSS source: {source_id}")
        return await self._subscriptions.insert_rss_subscription(channel_id, source_id)

    async def unsubscribe_rss(self, channel_id: str, source_id: str) -> bool:
        removed = await self._subscriptions.deactivate_rss_subscription(channel_id, source_id)
        if removed:
            logger.info(f"Channel {channel_id} unsubscribed from RSS source {source_id}")
        return removed

    async def list_ebird(self, channel_id: str | None = None) -> list[tuple[str, Scope]]:
        return await self._subscriptions.list_ebird_subscriptions(channel_id)

    async def list_rss(self, channel_id: str | None = None) -> list[tuple[str, str]]:
        return await self._subscriptions.list_rss_subscriptions(channel_id)


class SubscriptionResolver:
    """Which channels should receive a given item.

    Point lookups for single items; bulk dispatch goes through
    :class:`~scrubjay.storage.dispatch.DispatchRepository` instead.
    """

    def __init__(self, subscriptions: SubscriptionRepository) -> None:
        self._subscriptions = subscriptions

    async def channels_for_observation(
        self, state_code: str, county_code: str, common_name: str
    ) -> set[str]:
        return await self._subscriptions.channels_for_location(state_code, county_code, common_name)

    async def channels_for_rss_item(self, source_id: str) -> set[str]:
        return await self._subscriptions.channels_for_rss_source(source_id)

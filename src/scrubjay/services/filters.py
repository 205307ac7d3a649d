"""Species filter management."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from scrubjay.core.exceptions import ValidationError

if TYPE_CHECKING:
    from scrubjay.storage.filters import FilterRepository
    from scrubjay.storage.subscriptions import SubscriptionRepository

logger = logging.getLogger(__name__)


class FiltersService:
    """Add and remove per-channel species filters.

    Filters only make sense for channels with an eBird subscription; adding
    one elsewhere is rejected.
    """

    def __init__(self, filters: FilterRepository, subscriptions: SubscriptionRepository) -> None:
        self._filters = filters
        self._subscriptions = subscriptions

    async def is_channel_filterable(self, channel_id: str) -> bool:
        return await self._subscriptions.has_active_ebird_subscription(channel_id)

    async def add_filter(self, channel_id: str, common_name: str) -> bool:
        """Suppress ``common_name`` for ``channel_id``. Returns False if already filtered.

        Raises:
            ValidationError: If the name is blank or the channel has no eBird subscription.
        """
        if not common_name.strip():
            raise ValidationError("Species name must not be empty")
        if not await self.is_channel_filterable(channel_id):
            raise ValidationError(f"Channel {channel_id} has no eBird subscription")
        added = await self._filters.add(channel_id, common_name)
        if added:
            logger.info(f"Channel {channel_id} now filters '{common_name.strip()}'")
        return added

    async def remove_filter(self, channel_id: str, common_name: str) -> bool:
        return await self._filters.remove(channel_id, common_name)

    async def list_filters(self, channel_id: str) -> list[str]:
        return await self._filters.list_for_channel(channel_id)

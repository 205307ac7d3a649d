"""Discord REST notifier.

Posts each notification as a single embed:

    POST {api}/channels/{channel_id}/messages
    Authorization: Bot <token>
    {"embeds": [ ... ]}

HTTP failures (unknown channel, missing permissions, exhausted retries)
return False so the dispatcher leaves those items pending.
"""

from __future__ import annotations

import logging

from scrubjay.core.exceptions import ConfigurationError
from scrubjay.http.client import HttpClient, HttpClientError
from scrubjay.protocols.notification import Notification

logger = logging.getLogger(__name__)


class DiscordNotifier:
    """Sends embeds to Discord channels through the bot REST API.

    Args:
        client: HTTP client whose ``base_url`` is the Discord API root.
        token: Bot token.
    """

    def __init__(self, client: HttpClient, token: str | None) -> None:
        self._client = client
        self._token = token

    async def initialize(self) -> None:
        if not self._token:
            raise ConfigurationError("SCRUBJAY_DISCORD_TOKEN is not set")

    async def close(self) -> None:
        await self._client.close()

    async def send(self, channel_id: str, notification: Notification) -> bool:
        try:
            await self._client.post(
                f"/channels/{channel_id}/messages",
                json={"embeds": [notification.to_embed()]},
                headers={"Authorization": f"Bot {self._token}"},
            )
        except HttpClientError as e:
            logger.warning(f"Discord rejected message for channel {channel_id}: {e}")
            return False
        return True

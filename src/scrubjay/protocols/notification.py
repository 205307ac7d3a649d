"""Notification protocol.

Defines the interface for delivering rendered alerts to a channel
(Discord, console, etc.).

Example:
    >>> from scrubjay.protocols.notification import Notification, NotificationField
    >>> n = Notification(
    ...     title="Snowy Owl - Los Angeles",
    ...     description="Reported at a private location",
    ...     fields=[NotificationField(name="Details", value="1 new report(s)")],
    ... )
    >>> n.fields[0].name
    'Details'
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class NotificationField:
    """A labelled block inside a notification."""

    name: str
    value: str
    inline: bool = False


@dataclass
class Notification:
    """A rendered, embed-shaped message for one channel."""

    title: str | None = None
    description: str | None = None
    url: str | None = None
    color: int | None = None
    fields: list[NotificationField] = field(default_factory=list)
    timestamp: datetime | None = None

    def to_embed(self) -> dict[str, Any]:
        """Discord embed payload.

        Example:
            >>> from scrubjay.protocols.notification import Notification
            >>> Notification(title="Hi", color=0x3498DB).to_embed()
            {'title': 'Hi', 'color': 3447003}
        """
        embed: dict[str, Any] = {}
        if self.title:
            embed["title"] = self.title
        if self.description:
            embed["description"] = self.description
        if self.url:
            embed["url"] = self.url
        if self.color is not None:
            embed["color"] = self.color
        if self.fields:
            embed["fields"] = [
                {"name": f.name, "value": f.value, "inline": f.inline} for f in self.fields
            ]
        if self.timestamp is not None:
            embed["timestamp"] = self.timestamp.isoformat()
        return embed


@runtime_checkable
class Notifier(Protocol):
    """Notification backend protocol.

    ``send`` reports an unreachable channel by returning False (or raising
    :class:`~scrubjay.core.exceptions.NotificationError`); it must not raise
    anything else, so one bad channel cannot abort a dispatch cycle.
    """

    async def send(self, channel_id: str, notification: Notification) -> bool:
        """Send a notification. Returns True if delivered."""
        ...

    async def initialize(self) -> None:
        """Initialize notifier."""
        ...

    async def close(self) -> None:
        """Clean up resources."""
        ...

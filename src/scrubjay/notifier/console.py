"""Console notifier implementation.

Prints rendered alerts to a stream instead of a chat channel. Useful for
development and for running the whole pipeline without a Discord token.

Example:
    >>> from scrubjay.notifier.console import ConsoleNotifier
    >>> notifier = ConsoleNotifier()
    >>> # ConsoleNotifier implements Notifier protocol
    >>> hasattr(notifier, 'send')
    True
"""

from __future__ import annotations

import sys
from datetime import UTC, datetime
from typing import TextIO

from scrubjay.protocols.notification import Notification


class ConsoleNotifier:
    """Notifier that writes each alert as a short text block.

    Example:
        >>> import asyncio
        >>> import io
        >>> from scrubjay.notifier.console import ConsoleNotifier
        >>> from scrubjay.protocols.notification import Notification
        >>> out = io.StringIO()
        >>> notifier = ConsoleNotifier(stream=out, show_timestamp=False)
        >>> asyncio.run(notifier.send("chan-1", Notification(title="Snowy Owl - Marin")))
        True
        >>> "#chan-1" in out.getvalue()
        True
    """

    def __init__(
        self,
        stream: TextIO | None = None,
        show_timestamp: bool = True,
        fail_channels: set[str] | None = None,
    ) -> None:
        """Initialize console notifier.

        Args:
            stream: Output stream (default sys.stdout).
            show_timestamp: Prefix each alert with the send time.
            fail_channels: Channels whose sends report failure, for exercising
                retry paths locally.
        """
        self._stream = stream or sys.stdout
        self._show_timestamp = show_timestamp
        self._fail_channels = set(fail_channels or ())
        self._initialized = False
        self.sent = 0

    async def initialize(self) -> None:
        self._initialized = True

    async def close(self) -> None:
        self._initialized = False

    async def send(self, channel_id: str, notification: Notification) -> bool:
        if channel_id in self._fail_channels:
            return False
        self._stream.write(self._format(channel_id, notification) + "\n")
        self._stream.flush()
        self.sent += 1
        return True

    def _format(self, channel_id: str, notification: Notification) -> str:
        """Format notification for display.

        Example:
            >>> from scrubjay.notifier.console import ConsoleNotifier
            >>> from scrubjay.protocols.notification import Notification, NotificationField
            >>> n = ConsoleNotifier(show_timestamp=False)
            >>> text = n._format("c1", Notification(
            ...     title="Alert", fields=[NotificationField("Details", "2 new report(s)")]
            ... ))
            >>> text.splitlines()[0]
            '#c1 Alert'
            >>> "Details: 2 new report(s)" in text
            True
        """
        header: list[str] = []
        if self._show_timestamp:
            ts = datetime.now(UTC).strftime("%Y-%m-%d %H:%M:%S")
            header.append(f"[{ts}]")
        header.append(f"#{channel_id}")
        if notification.title:
            header.append(notification.title)

        lines = [" ".join(header)]
        if notification.description:
            lines.append(f"  {notification.description}")
        for field in notification.fields:
            lines.append(f"  {field.name}: {field.value}")
        if notification.url:
            lines.append(f"  {notification.url}")
        return "\n".join(lines)

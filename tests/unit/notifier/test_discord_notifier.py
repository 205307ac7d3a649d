"""Tests for the Discord and console notifiers."""

from __future__ import annotations

import io
import json
from datetime import UTC, datetime

import httpx
import pytest

from scrubjay.core.exceptions import ConfigurationError
from scrubjay.http.client import HttpClient
from scrubjay.notifier import ConsoleNotifier, DiscordNotifier
from scrubjay.protocols.notification import Notification, NotificationField, Notifier


@pytest.fixture
def notification() -> Notification:
    return Notification(
        title="Snowy Owl - Los Angeles",
        description="Reported at a private location",
        url="https://ebird.org/checklist/S1",
        color=0x2ECC71,
        fields=[NotificationField(name="Details", value="👥 1 new report(s)")],
    )


def discord_client(handler) -> HttpClient:  # noqa: ANN001
    return HttpClient(
        base_url="https://discord.com/api/v10",
        rate_limit=1000.0,
        max_retries=0,
        transport=httpx.MockTransport(handler),
    )


class TestDiscordNotifier:
    """Embeds are POSTed to the channel messages endpoint."""

    async def test_send_posts_embed(self, notification: Notification) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"id": "1"})

        notifier = DiscordNotifier(discord_client(handler), "bot-token")
        await notifier.initialize()
        assert await notifier.send("1234", notification) is True
        await notifier.close()

        [request] = seen
        assert request.method == "POST"
        assert request.url.path == "/api/v10/channels/1234/messages"
        assert request.headers["Authorization"] == "Bot bot-token"
        body = json.loads(request.content)
        assert body["embeds"][0]["title"] == "Snowy Owl - Los Angeles"
        assert body["embeds"][0]["fields"][0]["name"] == "Details"

    async def test_rejected_channel_returns_false(self, notification: Notification) -> None:
        notifier = DiscordNotifier(discord_client(lambda r: httpx.Response(403)), "bot-token")
        assert await notifier.send("1234", notification) is False
        await notifier.close()

    async def test_server_error_not_reposted(self, notification: Notification) -> None:
        posts: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            posts.append(request)
            return httpx.Response(503)

        client = HttpClient(
            base_url="https://discord.com/api/v10",
            rate_limit=1000.0,
            max_retries=3,
            backoff_base=0.0,
            transport=httpx.MockTransport(handler),
        )
        notifier = DiscordNotifier(client, "bot-token")
        assert await notifier.send("1234", notification) is False
        await notifier.close()
        assert len(posts) == 1

    async def test_missing_token(self) -> None:
        notifier = DiscordNotifier(discord_client(lambda r: httpx.Response(200)), None)
        with pytest.raises(ConfigurationError):
            await notifier.initialize()

    def test_implements_protocol(self) -> None:
        assert isinstance(DiscordNotifier(HttpClient(), "t"), Notifier)


class TestConsoleNotifier:
    async def test_writes_block(self, notification: Notification) -> None:
        out = io.StringIO()
        notifier = ConsoleNotifier(stream=out, show_timestamp=False)
        assert await notifier.send("chan", notification)

        lines = out.getvalue().splitlines()
        assert lines[0] == "#chan Snowy Owl - Los Angeles"
        assert "  Details: 👥 1 new report(s)" in lines
        assert lines[-1] == "  https://ebird.org/checklist/S1"
        assert notifier.sent == 1

    async def test_timestamp_prefix(self, notification: Notification) -> None:
        out = io.StringIO()
        await ConsoleNotifier(stream=out).send("chan", notification)
        assert out.getvalue().startswith("[")

    async def test_fail_channels(self, notification: Notification) -> None:
        out = io.StringIO()
        notifier = ConsoleNotifier(stream=out, fail_channels={"down"})
        assert await notifier.send("down", notification) is False
        assert out.getvalue() == ""

    def test_implements_protocol(self) -> None:
        assert isinstance(ConsoleNotifier(), Notifier)


class TestNotificationEmbed:
    def test_timestamp_serialized(self) -> None:
        embed = Notification(title="t", timestamp=datetime(2024, 1, 15, tzinfo=UTC)).to_embed()
        assert embed["timestamp"] == "2024-01-15T00:00:00+00:00"

    def test_empty_parts_omitted(self) -> None:
        assert Notification().to_embed() == {}

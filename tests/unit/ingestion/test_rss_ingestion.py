"""Tests for RSS/Atom parsing and ingestion."""

from __future__ import annotations

from datetime import UTC, datetime

import httpx
import pytest

from scrubjay.core.exceptions import IngestionError
from scrubjay.http.client import HttpClient
from scrubjay.ingestion.rss import RssFetcher, RssService, RssTransformer, parse_feed, strip_html
from scrubjay.models.rss import RssSource
from scrubjay.storage import RssRepository, SourcesRepository, SubscriptionRepository

RSS_FEED = """<?xml version="1.0"?>
<rss version="2.0" xmlns:content="http://purl.org/rss/1.0/modules/content/">
  <channel>
    <title>ABA Rare Bird Alert</title>
    <item>
      <title>Ross's Gull in Massachusetts</title>
      <link>https://example.com/rosss-gull</link>
      <guid>rba-1001</guid>
      <description>Short summary</description>
      <content:encoded><![CDATA[<p>Seen at <b>Newburyport</b> harbor.</p>]]></content:encoded>
      <pubDate>Mon, 15 Jan 2024 14:30:00 GMT</pubDate>
    </item>
    <item>
      <title>Ivory Gull update</title>
      <link>https://example.com/ivory-gull</link>
      <description>&lt;p&gt;Still present&lt;/p&gt;</description>
    </item>
  </channel>
</rss>
"""

ATOM_FEED = """<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>County Listserv</title>
  <entry>
    <title>Snowy Owl at the jetty</title>
    <link href="https://example.com/snowy"/>
    <id>urn:uuid:1234</id>
    <summary>Continuing bird</summary>
    <updated>2024-01-15T14:30:00Z</updated>
  </entry>
</feed>
"""


class TestParseFeed:
    def test_rss_items(self) -> None:
        entries = parse_feed(RSS_FEED)
        assert len(entries) == 2
        first = entries[0]
        assert first["guid"] == "rba-1001"
        assert first["content"] == "<p>Seen at <b>Newburyport</b> harbor.</p>"
        assert first["published_at"] == datetime(2024, 1, 15, 14, 30, tzinfo=UTC)

    def test_atom_entries(self) -> None:
        [entry] = parse_feed(ATOM_FEED)
        assert entry["title"] == "Snowy Owl at the jetty"
        assert entry["link"] == "https://example.com/snowy"
        assert entry["guid"] == "urn:uuid:1234"
        assert entry["published_at"] == datetime(2024, 1, 15, 14, 30, tzinfo=UTC)

    def test_malformed_xml(self) -> None:
        with pytest.raises(IngestionError):
            parse_feed("<rss><channel>")

    def test_empty_channel(self) -> None:
        assert parse_feed("<rss><channel/></rss>") == []


class TestRssTransformer:
    """Ids are stable across re-fetches."""

    def test_guid_preferred(self) -> None:
        assert RssTransformer.stable_id({"guid": "g", "link": "l"}) == "g"

    def test_link_fallback(self) -> None:
        assert RssTransformer.stable_id({"link": "https://example.com/a"}) == "https://example.com/a"

    def test_hash_fallback_is_deterministic(self) -> None:
        entry = {"title": "Gull", "pub_date": "Mon, 15 Jan 2024"}
        assert RssTransformer.stable_id(entry) == RssTransformer.stable_id(dict(entry))
        assert RssTransformer.stable_id(entry) != RssTransformer.stable_id({"title": "Tern"})

    def test_content_preferred_over_description(self) -> None:
        item = RssTransformer().transform_entry(parse_feed(RSS_FEED)[0], "aba")
        assert item.id == "rba-1001"
        assert item.source_id == "aba"
        assert item.content_html == "<p>Seen at <b>Newburyport</b> harbor.</p>"
        assert item.description == "Seen at Newburyport harbor."

    def test_escaped_description_stripped(self) -> None:
        item = RssTransformer().transform_entry(parse_feed(RSS_FEED)[1], "aba")
        assert item.id == "https://example.com/ivory-gull"
        assert item.description == "Still present"

    def test_strip_html_entities(self) -> None:
        assert strip_html("<p>A &amp; B</p>") == "A & B"


class TestRssService:
    async def test_ingests_subscribed_sources(
        self,
        subscriptions: SubscriptionRepository,
        rss_repo: RssRepository,
        sources: SourcesRepository,
        rss_source: RssSource,
    ) -> None:
        await rss_repo.upsert_source(rss_source)
        await rss_repo.upsert_source(RssSource(id="idle", name="Idle", url="https://example.com/idle.xml"))
        await subscriptions.insert_rss_subscription("chan", "aba")
        fetched: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            fetched.append(str(request.url))
            return httpx.Response(200, text=RSS_FEED)

        async with HttpClient(rate_limit=1000.0, max_retries=0, transport=httpx.MockTransport(handler)) as client:
            service = RssService(RssFetcher(client), rss_repo, sources)
            assert await service.ingest_all() == 2

        assert fetched == ["https://example.com/aba.xml"]

    async def test_fetch_failure_logged(
        self,
        subscriptions: SubscriptionRepository,
        rss_repo: RssRepository,
        sources: SourcesRepository,
        rss_source: RssSource,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        await rss_repo.upsert_source(rss_source)
        await subscriptions.insert_rss_subscription("chan", "aba")

        transport = httpx.MockTransport(lambda request: httpx.Response(404))
        async with HttpClient(rate_limit=1000.0, max_retries=0, transport=transport) as client:
            service = RssService(RssFetcher(client), rss_repo, sources)
            assert await service.ingest_all() == 0

        assert "RSS ingestion failed for aba" in caplog.text

"""RSS/Atom ingestion.

Parses RSS 2.0 and Atom feeds into :class:`~scrubjay.models.rss.RssItem`
objects with ids that stay stable across re-fetches.

Example:
    >>> from scrubjay.ingestion.rss import RssTransformer, parse_feed
    >>> xml = '''<rss><channel><item>
    ...   <title>Rare gull at the pier</title>
    ...   <link>https://example.com/gull</link>
    ... </item></channel></rss>'''
    >>> entries = parse_feed(xml)
    >>> RssTransformer().transform_entry(entries[0], "aba").id
    'https://example.com/gull'
"""

from __future__ import annotations

import contextlib
import hashlib
import html
import logging
import re
import xml.etree.ElementTree as ET
from datetime import datetime
from email.utils import parsedate_to_datetime
from typing import TYPE_CHECKING, Any

from scrubjay.core.exceptions import IngestionError, StorageError, StorageUnavailableError
from scrubjay.http.client import HttpClient, HttpClientError
from scrubjay.models.base import AlertKind
from scrubjay.models.rss import RssItem, RssSource

if TYPE_CHECKING:
    from scrubjay.storage.rss import RssRepository
    from scrubjay.storage.sources import SourcesRepository

logger = logging.getLogger(__name__)

ATOM_NS = "http://www.w3.org/2005/Atom"
CONTENT_NS = "http://purl.org/rss/1.0/modules/content/"

_TAG_RE = re.compile(r"<[^>]+>")


def strip_html(value: str) -> str:
    """Plain-text snippet of an HTML fragment.

    Example:
        >>> strip_html("<p>Two <b>Ross's</b> Gulls &amp; a Kittiwake</p>")
        "Two Ross's Gulls & a Kittiwake"
    """
    return " ".join(html.unescape(_TAG_RE.sub(" ", value)).split())


def _is_atom(root: ET.Element) -> bool:
    return root.tag == f"{{{ATOM_NS}}}feed" or root.tag == "feed"


def _text(elem: ET.Element | None) -> str | None:
    if elem is None or not elem.text:
        return None
    return elem.text.strip() or None


def _parse_rss_item(item: ET.Element) -> dict[str, Any]:
    entry: dict[str, Any] = {
        "title": _text(item.find("title")),
        "link": _text(item.find("link")),
        "guid": _text(item.find("guid")),
        "description": _text(item.find("description")),
        "content": _text(item.find(f"{{{CONTENT_NS}}}encoded")),
        "pub_date": _text(item.find("pubDate")),
    }
    if entry["pub_date"]:
        with contextlib.suppress(ValueError, TypeError):
            entry["published_at"] = parsedate_to_datetime(entry["pub_date"])
    return entry


def _parse_atom_entry(entry_elem: ET.Element) -> dict[str, Any]:
    def find(tag: str) -> ET.Element | None:
        elem = entry_elem.find(f"{{{ATOM_NS}}}{tag}")
        return elem if elem is not None else entry_elem.find(tag)

    link_elem = find("link")
    entry: dict[str, Any] = {
        "title": _text(find("title")),
        "link": link_elem.get("href") if link_elem is not None else None,
        "guid": _text(find("id")),
        "description": _text(find("summary")),
        "content": _text(find("content")),
        "pub_date": _text(find("published")) or _text(find("updated")),
    }
    if entry["pub_date"]:
        with contextlib.suppress(ValueError):
            entry["published_at"] = datetime.fromisoformat(entry["pub_date"].replace("Z", "+00:00"))
    return entry


def parse_feed(xml_content: str) -> list[dict[str, Any]]:
    """Parse an RSS 2.0 or Atom document into entry dicts.

    Raises:
        IngestionError: If the document is not well-formed XML.
    """
    try:
        root = ET.fromstring(xml_content)
    except ET.ParseError as e:
        raise IngestionError(f"Failed to parse feed XML: {e}", cause=e) from e

    if _is_atom(root):
        entries = root.findall(f"{{{ATOM_NS}}}entry") or root.findall("entry")
        return [_parse_atom_entry(entry) for entry in entries]
    return [_parse_rss_item(item) for item in root.findall(".//item")]


class RssFetcher:
    """Downloads and parses feeds."""

    def __init__(self, client: HttpClient) -> None:
        self._client = client

    async def fetch(self, url: str) -> list[dict[str, Any]]:
        """Fetch ``url`` and return its parsed entries.

        Raises:
            IngestionError: If the fetch or the parse fails.
        """
        try:
            xml_content = await self._client.get_text(url)
        except HttpClientError as e:
            raise IngestionError(f"Failed to fetch feed: {e}", source=url, cause=e) from e
        return parse_feed(xml_content)


class RssTransformer:
    """Turns parsed entries into :class:`RssItem` objects."""

    @staticmethod
    def stable_id(entry: dict[str, Any]) -> str:
        """guid, else link, else SHA-1 of ``title::pubDate::link``.

        Example:
            >>> RssTransformer.stable_id({"guid": "g-1", "link": "https://example.com/a"})
            'g-1'
            >>> len(RssTransformer.stable_id({"title": "t", "pub_date": "d"}))
            40
        """
        if entry.get("guid"):
            return entry["guid"]
        if entry.get("link"):
            return entry["link"]
        composite = "::".join(
            [entry.get("title") or "", entry.get("pub_date") or "", entry.get("link") or ""]
        )
        return hashlib.sha1(composite.encode()).hexdigest()

    def transform_entry(self, entry: dict[str, Any], source_id: str) -> RssItem:
        content_html = entry.get("content") or entry.get("description")
        return RssItem(
            id=self.stable_id(entry),
            source_id=source_id,
            title=entry.get("title"),
            description=strip_html(content_html) if content_html else None,
            content_html=content_html,
            link=entry.get("link"),
            published_at=entry.get("published_at"),
        )

    def transform_feed(self, entries: list[dict[str, Any]], source_id: str) -> list[RssItem]:
        return [self.transform_entry(entry, source_id) for entry in entries]


class RssService:
    """Ingestion service for subscribed RSS sources."""

    def __init__(
        self,
        fetcher: RssFetcher,
        repository: RssRepository,
        sources: SourcesRepository,
        transformer: RssTransformer | None = None,
    ) -> None:
        self._fetcher = fetcher
        self._repository = repository
        self._sources = sources
        self._transformer = transformer or RssTransformer()

    @property
    def kind(self) -> AlertKind:
        return AlertKind.RSS

    async def ingest_source(self, source: RssSource) -> int:
        entries = await self._fetcher.fetch(source.url)
        logger.info(f"Fetched {len(entries)} items from RSS source {source.name}")

        stored = 0
        for item in self._transformer.transform_feed(entries, source.id):
            try:
                await self._repository.upsert_item(item)
                stored += 1
            except StorageUnavailableError:
                raise
            except StorageError as e:
                logger.error(f"Could not upsert RSS item {item.id}: {e}")
        return stored

    async def ingest_all(self) -> int:
        total = 0
        for source in await self._sources.rss_sources():
            try:
                total += await self.ingest_source(source)
            except StorageUnavailableError:
                raise
            except IngestionError as e:
                logger.error(f"RSS ingestion failed for {source.id}: {e}")
            except Exception:
                logger.exception(f"Unexpected error ingesting RSS source {source.id}")
        return total

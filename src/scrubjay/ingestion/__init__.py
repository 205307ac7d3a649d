"""Ingestion services: fetch, normalize and upsert upstream items."""

from scrubjay.ingestion.ebird import EBirdFetcher, EBirdService, EBirdTransformer
from scrubjay.ingestion.rss import RssFetcher, RssService, RssTransformer, parse_feed

__all__ = [
    "EBirdFetcher",
    "EBirdService",
    "EBirdTransformer",
    "RssFetcher",
    "RssService",
    "RssTransformer",
    "parse_feed",
]

"""RSS source and item models."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from scrubjay.models.base import ScrubJayModel


class RssSource(ScrubJayModel):
    """A named feed that channels can subscribe to.

    Example:
        >>> from scrubjay.models.rss import RssSource
        >>> RssSource(id="abc", name="ABA Rare Bird Alert", url="https://example.com/rss").id
        'abc'
    """

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1)


class RssItem(ScrubJayModel):
    """A normalized feed entry; ``id`` is stable across re-fetches."""

    id: str = Field(..., min_length=1)
    source_id: str
    title: str | None = None
    description: str | None = None
    content_html: str | None = None
    link: str | None = None
    published_at: datetime | None = None

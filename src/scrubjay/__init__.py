"""
ScrubJay - feed-to-channel alert delivery.

Ingests eBird notable observations and RSS feeds, matches them against
channel subscriptions, and delivers each item to each channel at most once.

Key Features:
- Hierarchical region subscriptions (whole state or one county)
- Per-channel species filters
- Set-based undelivered-item queries against a delivery ledger
- Startup reconciliation so restarts never flood channels with backlog

Quick Start:
    >>> from scrubjay import ScrubJay, get_settings
    >>> async with ScrubJay(get_settings(database_url="sqlite://")) as app:
    ...     await app.subscriptions.subscribe_ebird("1234", "US-CA-037")
    ...     await app.bootstrap()
    ...     results = await app.dispatch()
"""

from scrubjay.app import ScrubJay
from scrubjay.core.config import Settings, get_settings
from scrubjay.core.exceptions import ScrubJayError
from scrubjay.models.base import AlertKind
from scrubjay.models.scope import Subregion, WholeRegion, parse_region_code

__version__ = "0.3.0"

__all__ = [
    "AlertKind",
    "ScrubJay",
    "ScrubJayError",
    "Settings",
    "Subregion",
    "WholeRegion",
    "__version__",
    "get_settings",
    "parse_region_code",
]

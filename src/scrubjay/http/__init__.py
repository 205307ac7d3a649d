"""ScrubJay HTTP utilities.

Example:
    >>> from scrubjay.http import HttpClient, RateLimiter
    >>>
    >>> async with HttpClient(rate_limit=5.0) as client:
    ...     text = await client.get_text("https://example.com/feed.xml")
"""

from scrubjay.http.client import HttpClient, HttpClientError, RateLimitError
from scrubjay.http.rate_limiter import RateLimiter

__all__ = [
    "HttpClient",
    "HttpClientError",
    "RateLimitError",
    "RateLimiter",
]

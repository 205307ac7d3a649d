"""Rate limiter for outbound API calls.

Spaces requests so a client never exceeds ``rate`` requests per second;
eBird and Discord both throttle aggressive callers.

Example:
    >>> from scrubjay.http import RateLimiter
    >>> limiter = RateLimiter(rate=5.0)
    >>> limiter.min_interval
    0.2
"""

from __future__ import annotations

import asyncio
import time


class RateLimiter:
    """Minimum-interval limiter shared by all requests of one client.

    Attributes:
        rate: Maximum requests per second
        min_interval: Minimum interval between requests
    """

    def __init__(self, rate: float = 5.0):
        if rate <= 0:
            raise ValueError("rate must be positive")
        self.rate = rate
        self.min_interval = 1.0 / rate
        self._last_request: float = 0.0
        self._lock = asyncio.Lock()

    async def acquire(self) -> float:
        """Wait until a request can be made.

        Returns:
            Time waited in seconds
        """
        async with self._lock:
            elapsed = time.monotonic() - self._last_request
            wait_time = 0.0

            if elapsed < self.min_interval:
                wait_time = self.min_interval - elapsed
                await asyncio.sleep(wait_time)

            self._last_request = time.monotonic()
            return wait_time

    def reset(self) -> None:
        """Forget the last request time."""
        self._last_request = 0.0

"""HTTP client with rate limiting and retry support.

Shared by the eBird fetcher, the RSS fetcher and the Discord notifier:
- Automatic rate limiting
- Retry with exponential backoff on 429, 5xx, timeouts and transport errors
  (non-idempotent methods such as POST retry only on 429 and failed connects)
- Connection pooling through one ``httpx.AsyncClient``

Example:
    >>> from scrubjay.http import HttpClient
    >>>
    >>> async with HttpClient(base_url="https://api.ebird.org", rate_limit=2.0) as client:
    ...     rows = await client.get_json("/v2/data/obs/US-CA/recent/notable")
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from scrubjay.core.exceptions import ScrubJayError
from scrubjay.http.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

_RETRYABLE_STATUS = frozenset({500, 502, 503, 504})
_IDEMPOTENT_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "PUT", "DELETE"})


class HttpClientError(ScrubJayError):
    """Base exception for HTTP client errors."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimitError(HttpClientError):
    """Raised when rate limited by server after all retries."""

    def __init__(self, retry_after: float):
        self.retry_after = retry_after
        super().__init__(f"Rate limited, retry after {retry_after}s", status_code=429)


class HttpClient:
    """Async HTTP client with rate limiting and retry support.

    Args:
        base_url: Base URL for relative requests
        rate_limit: Maximum requests per second
        user_agent: User-Agent header
        timeout: Default request timeout in seconds
        max_retries: Maximum retry attempts on failure
        backoff_base: Seconds for the first backoff; doubles per attempt
        headers: Additional default headers
        transport: Optional httpx transport (tests use ``httpx.MockTransport``)
    """

    def __init__(
        self,
        base_url: str = "",
        rate_limit: float = 5.0,
        user_agent: str = "ScrubJay/0.3",
        timeout: float = 30.0,
        max_retries: int = 3,
        backoff_base: float = 1.0,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base_url = base_url
        self._rate_limiter = RateLimiter(rate_limit)
        self._user_agent = user_agent
        self._timeout = timeout
        self._max_retries = max_retries
        self._backoff_base = backoff_base
        self._extra_headers = headers or {}
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def max_retries(self) -> int:
        return self._max_retries

    @property
    def headers(self) -> dict[str, str]:
        """Default headers for requests."""
        return {
            "User-Agent": self._user_agent,
            "Accept-Encoding": "gzip, deflate",
            "Accept": "*/*",
            **self._extra_headers,
        }

    async def _ensure_client(self) -> httpx.AsyncClient:
        """Get or create the underlying httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers=self.headers,
                timeout=httpx.Timeout(self._timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> HttpClient:
        await self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _backoff(self, attempt: int) -> None:
        await asyncio.sleep(self._backoff_base * (2**attempt))

    async def _request(
        self,
        method: str,
        url: str,
        *,
        retry: bool = True,
        **kwargs: Any,
    ) -> httpx.Response:
        """Make a rate-limited request with retries.

        Raises:
            RateLimitError: If still rate limited after the last attempt
            HttpClientError: For other HTTP or transport errors
        """
        client = await self._ensure_client()

        max_retries = self._max_retries if retry else 0
        # a POST may have been accepted before the response was lost
        replayable = method.upper() in _IDEMPOTENT_METHODS
        last_error: Exception | None = None

        for attempt in range(max_retries + 1):
            await self._rate_limiter.acquire()

            try:
                response = await client.request(method, url, **kwargs)

                if response.status_code == 429:
                    retry_after = float(response.headers.get("Retry-After", "10"))
                    if attempt < max_retries:
                        logger.warning(f"Rate limited on {url}, retrying in {retry_after}s")
                        await asyncio.sleep(retry_after)
                        continue
                    raise RateLimitError(retry_after)

                response.raise_for_status()
                return response

            except httpx.HTTPStatusError as e:
                last_error = e
                status = e.response.status_code
                if status in _RETRYABLE_STATUS and replayable and attempt < max_retries:
                    await self._backoff(attempt)
                    continue
                raise HttpClientError(f"HTTP {status}: {e}", status_code=status) from e

            except httpx.TimeoutException as e:
                last_error = e
                if (replayable or isinstance(e, httpx.ConnectTimeout)) and attempt < max_retries:
                    await self._backoff(attempt)
                    continue
                raise HttpClientError(f"Request timeout: {e}") from e

            except httpx.RequestError as e:
                last_error = e
                if (replayable or isinstance(e, httpx.ConnectError)) and attempt < max_retries:
                    await self._backoff(attempt)
                    continue
                raise HttpClientError(f"Request failed: {e}") from e

        raise HttpClientError(f"Max retries exceeded: {last_error}")

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self._request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self._request("POST", url, **kwargs)

    async def get_text(self, url: str, **kwargs: Any) -> str:
        response = await self.get(url, **kwargs)
        return response.text

    async def get_json(self, url: str, **kwargs: Any) -> Any:
        response = await self.get(url, **kwargs)
        try:
            return response.json()
        except ValueError as e:
            raise HttpClientError(f"Invalid JSON from {url}: {e}", status_code=response.status_code) from e


__all__ = [
    "HttpClient",
    "HttpClientError",
    "RateLimitError",
]

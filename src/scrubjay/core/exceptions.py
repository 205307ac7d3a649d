"""Custom exceptions.

ScrubJay uses a hierarchy of exceptions to keep error handling explicit:

Example:
    >>> from scrubjay.core.exceptions import InvalidRegionCodeError, ScrubJayError, StorageError, ValidationError
    >>> isinstance(StorageError("db error"), ScrubJayError)
    True
    >>> try:
    ...     raise InvalidRegionCodeError("US")
    ... except ValidationError as e:
    ...     print(f"Caught: {type(e).__name__}")
    Caught: InvalidRegionCodeError
"""

from __future__ import annotations


class ScrubJayError(Exception):
    """Base exception for ScrubJay."""


class StorageError(ScrubJayError):
    """Storage operation failed.

    Example:
        >>> from scrubjay.core.exceptions import StorageError
        >>> raise StorageError("insert failed")  # doctest: +IGNORE_EXCEPTION_DETAIL
        Traceback (most recent call last):
        StorageError: insert failed
    """


class StorageUnavailableError(StorageError):
    """The database connection was lost.

    Unlike other storage errors this one is not absorbed by dispatch cycles;
    it propagates so the process can fail fast and be restarted.
    """


class ValidationError(ScrubJayError):
    """Input was rejected at a boundary."""


class InvalidRegionCodeError(ValidationError):
    """Region code is not of the form ``CC-ST`` or ``CC-ST-CTY``.

    Example:
        >>> from scrubjay.core.exceptions import InvalidRegionCodeError
        >>> err = InvalidRegionCodeError("US")
        >>> err.region_code
        'US'
        >>> str(err)
        'Invalid region code: US'
    """

    def __init__(self, region_code: str) -> None:
        super().__init__(f"Invalid region code: {region_code}")
        self.region_code = region_code


class ConfigurationError(ScrubJayError):
    """Configuration is invalid or incomplete."""


class NotFoundError(ScrubJayError):
    """Requested resource not found."""


class IngestionError(ScrubJayError):
    """Fetching or parsing a source failed.

    Example:
        >>> from scrubjay.core.exceptions import IngestionError
        >>> err = IngestionError("bad xml", source="audubon")
        >>> err.source
        'audubon'
    """

    def __init__(
        self,
        message: str,
        source: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.source = source
        self.cause = cause


class NotificationError(ScrubJayError):
    """A notification could not be delivered to a channel."""

    def __init__(self, message: str, channel_id: str | None = None) -> None:
        super().__init__(message)
        self.channel_id = channel_id


class BootstrapTimeoutError(ScrubJayError):
    """Startup reconciliation did not finish within the readiness window."""

    def __init__(self, timeout: float) -> None:
        super().__init__(f"Bootstrap did not complete within {timeout:.0f}s")
        self.timeout = timeout

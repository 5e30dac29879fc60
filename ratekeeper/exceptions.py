"""Custom exceptions for ratekeeper.

A normal "not accepted" outcome is a ``RateLimit`` value, never an
exception. The only way a rejection becomes an exception is
``RateLimit.ensure_accepted()``, which raises ``RateLimitExceededError``.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ratekeeper.rate_limit import RateLimit


class RateLimiterError(Exception):
    """Base class for ratekeeper exceptions."""

    def __init__(self, message: str = "Rate limiter error"):
        self.message = message
        super().__init__(message)


class ConfigurationError(RateLimiterError):
    """Raised for configuration that can never be satisfied.

    Covers invalid limiter configuration as well as requests for more
    tokens than a limiter's capacity. Never retried.
    """


class InvalidIntervalError(ConfigurationError):
    """Raised when a rate or window interval is shorter than one second,
    or a refill amount is below one token.
    """


class MaxWaitDurationExceededError(RateLimiterError):
    """Raised by ``reserve()`` when the required wait exceeds ``max_wait``.

    The rejected ``RateLimit`` is attached so callers can fall back to
    reject-immediately handling using ``remaining`` and ``retry_at``.
    """

    def __init__(self, message: str, rate_limit: RateLimit):
        self.rate_limit = rate_limit
        super().__init__(message)


class ReserveNotSupportedError(RateLimiterError):
    """Raised when ``reserve()`` is called on a limiter that cannot reserve."""


class LockUnavailableError(RateLimiterError):
    """Raised when the lock for a key could not be acquired."""

    def __init__(self, key: str, message: str | None = None):
        self.key = key
        super().__init__(message or f"Could not acquire lock for '{key}'")


class RateLimitExceededError(RateLimiterError):
    """Raised by ``RateLimit.ensure_accepted()`` for a rejected outcome."""

    def __init__(self, rate_limit: RateLimit, message: str = "Rate limit exceeded"):
        self.rate_limit = rate_limit
        super().__init__(message)

    @property
    def retry_at(self) -> float:
        return self.rate_limit.retry_at

    @property
    def retry_after(self) -> datetime:
        return self.rate_limit.retry_after

    @property
    def remaining(self) -> int:
        return self.rate_limit.remaining

    @property
    def limit(self) -> int:
        return self.rate_limit.limit

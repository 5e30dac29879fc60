"""Result types returned by limiters."""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone

from ratekeeper.core.utils import Clock, now
from ratekeeper.exceptions import RateLimitExceededError


@dataclass(frozen=True)
class RateLimit:
    """Outcome of a rate limiting decision.

    Attributes:
        remaining: Tokens still available after the decision (never negative)
        retry_at: Absolute time (epoch seconds) at which to retry
        accepted: Whether the request was admitted
        limit: Configured ceiling of the limiter that produced the outcome
    """

    remaining: int
    retry_at: float
    accepted: bool
    limit: int
    clock: Clock = field(default=now, repr=False, compare=False)

    @property
    def retry_after(self) -> datetime:
        """``retry_at`` as a timezone-aware UTC datetime."""
        return datetime.fromtimestamp(self.retry_at, tz=timezone.utc)

    def is_accepted(self) -> bool:
        return self.accepted

    def ensure_accepted(self) -> "RateLimit":
        """Return self, or raise ``RateLimitExceededError`` if rejected."""
        if not self.accepted:
            raise RateLimitExceededError(self)
        return self

    def seconds_until_retry(self) -> float:
        return max(0.0, self.retry_at - self.clock())

    async def wait(self) -> None:
        """Sleep until ``retry_at``; returns immediately if it has passed."""
        delay = self.seconds_until_retry()
        if delay > 0:
            await asyncio.sleep(delay)


@dataclass(frozen=True)
class Reservation:
    """Tokens reserved from a limiter.

    The tokens are already spent when the reservation is handed out;
    dropping a reservation does not give them back.

    Attributes:
        act_at: Absolute time (epoch seconds) at which the caller may proceed
        rate_limit: Outcome recorded when the reservation was made
    """

    act_at: float
    rate_limit: RateLimit
    clock: Clock = field(default=now, repr=False, compare=False)

    def wait_duration(self) -> float:
        """Seconds left until ``act_at``; recomputed on every call."""
        return max(0.0, self.act_at - self.clock())

    async def wait(self) -> None:
        """Sleep until the reservation may be used."""
        delay = self.wait_duration()
        if delay > 0:
            await asyncio.sleep(delay)

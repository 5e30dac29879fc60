"""Limiter that admits everything."""

from typing import Optional

from ratekeeper.core.utils import Clock, Duration, now
from ratekeeper.limiter import Limiter
from ratekeeper.rate_limit import RateLimit, Reservation

# Largest integer a double represents exactly; keeps arithmetic on
# ``remaining`` and ``limit`` well defined where infinity would not.
MAX_SAFE_INTEGER = 2**53 - 1


class NoLimiter(Limiter):
    """Always accepts. Useful in tests and behind feature flags."""

    def __init__(self, clock: Optional[Clock] = None):
        self._clock = clock or now

    async def consume(self, tokens: int = 1) -> RateLimit:
        return RateLimit(MAX_SAFE_INTEGER, self._clock(), True, MAX_SAFE_INTEGER, clock=self._clock)

    async def reserve(self, tokens: int = 1, max_wait: Optional[Duration] = None) -> Reservation:
        current = self._clock()
        result = RateLimit(MAX_SAFE_INTEGER, current, True, MAX_SAFE_INTEGER, clock=self._clock)
        return Reservation(current, result, clock=self._clock)

    async def reset(self) -> None:
        pass

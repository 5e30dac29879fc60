"""Sliding window rate limiting.

Approximates a true rolling window by weighting the previous window's hits
by how much of it still overlaps the rolling interval:

    effective = floor(previous_hits * (1 - elapsed_fraction) + current_hits)

This smooths out the boundary bursts a fixed window allows. When a request
is rejected the retry time is the end of the current window. Solving the
weighted inequality would give an earlier time; the window end is a safe
upper bound and is what callers see.
"""

import math
from dataclasses import dataclass
from functools import partial
from typing import Any, Dict, Optional

from ratekeeper.core.logging import get_log_context, get_logger
from ratekeeper.core.utils import Clock, Duration, now, to_seconds
from ratekeeper.exceptions import ConfigurationError, InvalidIntervalError, MaxWaitDurationExceededError
from ratekeeper.limiter import Limiter, LimiterState, check_tokens
from ratekeeper.rate_limit import RateLimit, Reservation
from ratekeeper.storage.base import Storage
from ratekeeper.storage.lock import Lock, NoLock
from ratekeeper.storage.serializer import register_state

logger = get_logger(__name__)

POLICY = "sliding_window"


@register_state(POLICY)
@dataclass
class SlidingWindowCounter(LimiterState):
    """Hit counts for the current and previous window.

    Attributes:
        id: Storage id
        current_hits: Hits recorded in the current window
        previous_hits: Hits recorded in the window before it
        window_end_at: End of the current window
        interval: Window length in seconds
    """

    id: str
    current_hits: int
    previous_hits: int
    window_end_at: float
    interval: float

    @classmethod
    def create(cls, id: str, interval: float, at: float) -> "SlidingWindowCounter":
        return cls(id=id, current_hits=0, previous_hits=0, window_end_at=at + interval, interval=interval)

    @classmethod
    def from_previous(cls, previous: "SlidingWindowCounter", at: float) -> "SlidingWindowCounter":
        """Open a new window at ``at``; the old current hits become previous."""
        return cls(
            id=previous.id,
            current_hits=0,
            previous_hits=previous.current_hits,
            window_end_at=at + previous.interval,
            interval=previous.interval,
        )

    @property
    def window_start_at(self) -> float:
        return self.window_end_at - self.interval

    def expiration_time(self) -> float:
        return math.ceil(self.window_end_at + self.interval)

    def is_expired(self, at: float) -> bool:
        return at >= self.window_end_at + self.interval

    def hit_count(self, at: float) -> int:
        """Weighted hit count at ``at``."""
        if at >= self.window_end_at:
            return self.current_hits
        elapsed_fraction = (at - self.window_start_at) / self.interval
        return math.floor(self.previous_hits * (1 - elapsed_fraction) + self.current_hits)

    def add(self, hits: int) -> None:
        self.current_hits += hits

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "current_hits": self.current_hits,
            "previous_hits": self.previous_hits,
            "window_end_at": self.window_end_at,
            "interval": self.interval,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SlidingWindowCounter":
        return cls(
            id=data["id"],
            current_hits=data["current_hits"],
            previous_hits=data["previous_hits"],
            window_end_at=data["window_end_at"],
            interval=data["interval"],
        )


class SlidingWindowLimiter(Limiter):
    """Admits at most ``limit`` weighted hits per rolling ``interval``."""

    def __init__(
        self,
        id: str,
        limit: int,
        interval: float,
        storage: Storage,
        lock: Optional[Lock] = None,
        clock: Optional[Clock] = None,
    ):
        if interval < 1:
            raise InvalidIntervalError(f"Interval must be at least 1 second, got {interval}")
        if limit < 1:
            raise ConfigurationError(f"Limit must be at least 1, got {limit}")
        self.id = id
        self.limit = limit
        self.interval = interval
        self._storage = storage
        self._lock = lock or NoLock()
        self._clock = clock or now

    async def consume(self, tokens: int = 1) -> RateLimit:
        check_tokens(tokens)
        return await self._lock.with_lock(self.id, partial(self._consume, tokens))

    async def reserve(self, tokens: int = 1, max_wait: Optional[Duration] = None) -> Reservation:
        check_tokens(tokens)
        if tokens > self.limit:
            raise ConfigurationError(f"Cannot reserve {tokens} tokens, limit is {self.limit}")
        return await self._lock.with_lock(
            self.id, partial(self._reserve, tokens, to_seconds(max_wait))
        )

    async def reset(self) -> None:
        await self._lock.with_lock(self.id, partial(self._storage.delete, self.id))
        logger.info(f"Reset sliding window '{self.id}'", extra=get_log_context(limiter_id=self.id, policy=POLICY))

    async def _consume(self, tokens: int) -> RateLimit:
        current = self._clock()
        window = await self._load(current)
        available = max(0, self.limit - window.hit_count(current))

        if available >= tokens:
            window.add(tokens)
            await self._storage.save(window)
            result = RateLimit(available - tokens, current, True, self.limit, clock=self._clock)
        else:
            result = RateLimit(available, window.window_end_at, False, self.limit, clock=self._clock)

        logger.debug(
            f"Sliding window '{self.id}': {'accepted' if result.accepted else 'rejected'} {tokens} tokens",
            extra=get_log_context(
                limiter_id=self.id,
                policy=POLICY,
                tokens=tokens,
                accepted=result.accepted,
                remaining=result.remaining,
                retry_at=result.retry_at,
            ),
        )
        return result

    async def _reserve(self, tokens: int, max_wait: Optional[float]) -> Reservation:
        current = self._clock()
        window = await self._load(current)
        available = max(0, self.limit - window.hit_count(current))

        if available >= tokens:
            window.add(tokens)
            await self._storage.save(window)
            result = RateLimit(available - tokens, current, True, self.limit, clock=self._clock)
            return Reservation(current, result, clock=self._clock)

        act_at = window.window_end_at
        wait = act_at - current
        if max_wait is not None and wait > max_wait:
            logger.warning(
                f"Reservation of {tokens} tokens on '{self.id}' needs {wait:.3f}s, max wait is {max_wait}s",
                extra=get_log_context(limiter_id=self.id, policy=POLICY, tokens=tokens),
            )
            raise MaxWaitDurationExceededError(
                f"Cannot reserve {tokens} tokens within {max_wait} seconds",
                RateLimit(available, act_at, False, self.limit, clock=self._clock),
            )

        await self._storage.save(window)
        result = RateLimit(0, act_at, True, self.limit, clock=self._clock)
        return Reservation(act_at, result, clock=self._clock)

    async def _load(self, current: float) -> SlidingWindowCounter:
        """Fetch the counter and move it to the window containing ``current``."""
        state = await self._storage.fetch(self.id)
        if not isinstance(state, SlidingWindowCounter) or state.is_expired(current):
            return SlidingWindowCounter.create(self.id, self.interval, current)
        if current >= state.window_end_at:
            return SlidingWindowCounter.from_previous(state, current)
        return state

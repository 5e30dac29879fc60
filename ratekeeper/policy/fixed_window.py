"""Fixed window rate limiting.

Time is cut into windows aligned to multiples of the interval and hits are
counted per window. Cheap and predictable, but up to twice the limit can get
through around a window boundary: a full burst at the end of one window
followed by a full burst at the start of the next.
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

POLICY = "fixed_window"


def align(at: float, interval: float) -> float:
    """Start of the aligned window containing ``at``."""
    return math.floor(at / interval) * interval


@register_state(POLICY)
@dataclass
class FixedWindowCounter(LimiterState):
    """Hit counter for the current fixed window."""

    id: str
    hit_count: int
    window_start: float
    interval: float
    max_hits: int

    @classmethod
    def create(cls, id: str, interval: float, max_hits: int, at: float) -> "FixedWindowCounter":
        return cls(
            id=id,
            hit_count=0,
            window_start=align(at, interval),
            interval=interval,
            max_hits=max_hits,
        )

    @property
    def window_end(self) -> float:
        return self.window_start + self.interval

    def expiration_time(self) -> float:
        return math.ceil(self.window_end)

    def roll(self, at: float) -> None:
        """Start a fresh window if ``at`` is past the current one."""
        if at >= self.window_end:
            self.hit_count = 0
            self.window_start = align(at, self.interval)

    def available_tokens(self, at: float) -> int:
        if at >= self.window_end:
            return self.max_hits
        return max(0, self.max_hits - self.hit_count)

    def add(self, hits: int, at: float) -> None:
        self.roll(at)
        self.hit_count += hits

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "hit_count": self.hit_count,
            "window_start": self.window_start,
            "interval": self.interval,
            "max_hits": self.max_hits,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FixedWindowCounter":
        return cls(
            id=data["id"],
            hit_count=data["hit_count"],
            window_start=data["window_start"],
            interval=data["interval"],
            max_hits=data["max_hits"],
        )


class FixedWindowLimiter(Limiter):
    """Admits at most ``limit`` tokens per aligned window of ``interval`` seconds."""

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
        logger.info(f"Reset fixed window '{self.id}'", extra=get_log_context(limiter_id=self.id, policy=POLICY))

    async def _consume(self, tokens: int) -> RateLimit:
        current = self._clock()
        window = await self._load(current)
        window.roll(current)
        available = window.available_tokens(current)

        if available >= tokens:
            window.add(tokens, current)
            await self._storage.save(window)
            result = RateLimit(available - tokens, current, True, self.limit, clock=self._clock)
        else:
            result = RateLimit(available, window.window_end, False, self.limit, clock=self._clock)

        logger.debug(
            f"Fixed window '{self.id}': {'accepted' if result.accepted else 'rejected'} {tokens} tokens",
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
        window.roll(current)
        available = window.available_tokens(current)

        if available >= tokens:
            window.add(tokens, current)
            await self._storage.save(window)
            result = RateLimit(available - tokens, current, True, self.limit, clock=self._clock)
            return Reservation(current, result, clock=self._clock)

        # No partial credit: the caller waits for the next window.
        act_at = window.window_end
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

    async def _load(self, current: float) -> FixedWindowCounter:
        state = await self._storage.fetch(self.id)
        if isinstance(state, FixedWindowCounter):
            return state
        return FixedWindowCounter.create(self.id, self.interval, self.limit, current)

"""Token bucket rate limiting.

The bucket holds up to ``capacity`` tokens and refills at a steady ``Rate``.
Bursts up to the capacity are admitted immediately; sustained traffic is
held to the refill rate. This is the only policy whose ``reserve()`` queues
callers against future refill.
"""

import math
from dataclasses import dataclass
from functools import partial
from typing import Any, Dict, Optional

from ratekeeper.core.logging import get_log_context, get_logger
from ratekeeper.core.utils import Clock, Duration, now, to_seconds
from ratekeeper.exceptions import ConfigurationError, MaxWaitDurationExceededError
from ratekeeper.limiter import Limiter, LimiterState, check_tokens
from ratekeeper.policy.rate import Rate
from ratekeeper.rate_limit import RateLimit, Reservation
from ratekeeper.storage.base import Storage
from ratekeeper.storage.lock import Lock, NoLock
from ratekeeper.storage.serializer import register_state

logger = get_logger(__name__)

POLICY = "token_bucket"


@register_state(POLICY)
@dataclass
class TokenBucket(LimiterState):
    """Token bucket state for one limiter id.

    Attributes:
        id: Storage id
        capacity: Maximum number of tokens (burst size)
        rate: Refill rate
        tokens: Tokens available as of ``last_update``
        last_update: Time the token count was last brought up to date. May lie
            in the future while reservations are queued.
    """

    id: str
    capacity: int
    rate: Rate
    tokens: int
    last_update: float

    @classmethod
    def create(cls, id: str, capacity: int, rate: Rate, at: float) -> "TokenBucket":
        """A full bucket as of ``at``."""
        return cls(id=id, capacity=capacity, rate=rate, tokens=capacity, last_update=at)

    def expiration_time(self) -> float:
        # Once a full refill has elapsed, a fresh bucket is indistinguishable.
        return math.ceil(self.last_update + self.rate.time_for_tokens(self.capacity))

    def available_tokens(self, at: float) -> int:
        """Tokens available at ``at`` without mutating the bucket."""
        added = self.rate.tokens_during(at - self.last_update)
        return min(self.capacity, self.tokens + added)

    def refill(self, at: float) -> None:
        """Credit whole tokens accrued up to ``at`` and move the timer to ``at``.

        Time that did not produce a whole token is dropped. A ``last_update``
        in the future (queued reservations) is left untouched.
        """
        if at <= self.last_update:
            return
        added = self.rate.tokens_during(at - self.last_update)
        self.tokens = min(self.capacity, self.tokens + added)
        self.last_update = at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "capacity": self.capacity,
            "tokens": self.tokens,
            "last_update": self.last_update,
            "rate": {
                "interval": self.rate.interval,
                "amount": self.rate.amount,
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TokenBucket":
        return cls(
            id=data["id"],
            capacity=data["capacity"],
            rate=Rate(data["rate"]["interval"], data["rate"]["amount"]),
            tokens=data["tokens"],
            last_update=data["last_update"],
        )


class TokenBucketLimiter(Limiter):
    """Token bucket limiter supporting both ``consume()`` and ``reserve()``.

    Example:
        >>> limiter = TokenBucketLimiter("api:alice", 10, Rate.per_second(1), InMemoryStorage())
        >>> result = await limiter.consume(3)
        >>> result.remaining
        7
    """

    def __init__(
        self,
        id: str,
        capacity: int,
        rate: Rate,
        storage: Storage,
        lock: Optional[Lock] = None,
        clock: Optional[Clock] = None,
    ):
        """Initialize the limiter.

        Args:
            id: Storage id of the bucket
            capacity: Maximum number of tokens (burst size)
            rate: Refill rate
            storage: Where the bucket is persisted
            lock: Per-key lock (defaults to NoLock)
            clock: Time source (defaults to wall clock)
        """
        if capacity < 1:
            raise ConfigurationError(f"Token bucket capacity must be at least 1, got {capacity}")
        self.id = id
        self.capacity = capacity
        self.rate = rate
        self._storage = storage
        self._lock = lock or NoLock()
        self._clock = clock or now

    async def consume(self, tokens: int = 1) -> RateLimit:
        check_tokens(tokens)
        return await self._lock.with_lock(self.id, partial(self._consume, tokens))

    async def reserve(self, tokens: int = 1, max_wait: Optional[Duration] = None) -> Reservation:
        check_tokens(tokens)
        if tokens > self.capacity:
            raise ConfigurationError(
                f"Cannot reserve {tokens} tokens, burst size is {self.capacity}"
            )
        return await self._lock.with_lock(
            self.id, partial(self._reserve, tokens, to_seconds(max_wait))
        )

    async def reset(self) -> None:
        await self._lock.with_lock(self.id, partial(self._storage.delete, self.id))
        logger.info(f"Reset token bucket '{self.id}'", extra=get_log_context(limiter_id=self.id, policy=POLICY))

    async def _consume(self, tokens: int) -> RateLimit:
        current = self._clock()
        bucket = await self._load(current)
        bucket.refill(current)
        available = bucket.tokens

        if available >= tokens:
            bucket.tokens = available - tokens
            await self._storage.save(bucket)
            result = RateLimit(available - tokens, current, True, self.capacity, clock=self._clock)
        else:
            # Rejections are not persisted; polling callers keep their refill progress.
            baseline = max(current, bucket.last_update)
            retry_at = baseline + self.rate.time_for_tokens(tokens - available)
            result = RateLimit(available, retry_at, False, self.capacity, clock=self._clock)

        self._log_decision(tokens, result)
        return result

    async def _reserve(self, tokens: int, max_wait: Optional[float]) -> Reservation:
        current = self._clock()
        bucket = await self._load(current)
        bucket.refill(current)
        available = bucket.tokens

        if available >= tokens:
            bucket.tokens = available - tokens
            await self._storage.save(bucket)
            result = RateLimit(available - tokens, current, True, self.capacity, clock=self._clock)
            self._log_decision(tokens, result)
            return Reservation(current, result, clock=self._clock)

        # Queue behind any reservation already pushing last_update forward.
        baseline = max(current, bucket.last_update)
        act_at = baseline + self.rate.time_for_tokens(tokens - available)
        wait = act_at - current

        if max_wait is not None and wait > max_wait:
            rejected = RateLimit(available, act_at, False, self.capacity, clock=self._clock)
            logger.warning(
                f"Reservation of {tokens} tokens on '{self.id}' needs {wait:.3f}s, max wait is {max_wait}s",
                extra=get_log_context(limiter_id=self.id, policy=POLICY, tokens=tokens),
            )
            raise MaxWaitDurationExceededError(
                f"Cannot reserve {tokens} tokens within {max_wait} seconds", rejected
            )

        bucket.tokens = 0
        bucket.last_update = act_at
        await self._storage.save(bucket)

        result = RateLimit(0, act_at, True, self.capacity, clock=self._clock)
        self._log_decision(tokens, result)
        return Reservation(act_at, result, clock=self._clock)

    async def _load(self, current: float) -> TokenBucket:
        state = await self._storage.fetch(self.id)
        if isinstance(state, TokenBucket):
            return state
        return TokenBucket.create(self.id, self.capacity, self.rate, current)

    def _log_decision(self, tokens: int, result: RateLimit) -> None:
        logger.debug(
            f"Token bucket '{self.id}': {'accepted' if result.accepted else 'rejected'} {tokens} tokens",
            extra=get_log_context(
                limiter_id=self.id,
                policy=POLICY,
                tokens=tokens,
                accepted=result.accepted,
                remaining=result.remaining,
                retry_at=result.retry_at,
            ),
        )

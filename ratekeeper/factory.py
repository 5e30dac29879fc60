"""Build limiters from configuration.

A factory holds one validated limiter configuration plus the storage and
lock to use, and creates a limiter per key (user id, API key, IP address).
"""

from typing import Any, Optional, Sequence

from ratekeeper.compound import CompoundLimiter
from ratekeeper.core.config import (
    FixedWindowConfig,
    NoLimitConfig,
    SlidingWindowConfig,
    TokenBucketConfig,
    parse_limiter_config,
)
from ratekeeper.core.logging import get_log_context, get_logger
from ratekeeper.core.utils import Clock, duration_to_seconds
from ratekeeper.exceptions import ConfigurationError
from ratekeeper.limiter import Limiter
from ratekeeper.policy.fixed_window import FixedWindowLimiter
from ratekeeper.policy.no_limit import NoLimiter
from ratekeeper.policy.rate import Rate
from ratekeeper.policy.sliding_window import SlidingWindowLimiter
from ratekeeper.policy.token_bucket import TokenBucketLimiter
from ratekeeper.storage.base import Storage
from ratekeeper.storage.lock import Lock

logger = get_logger(__name__)


class RateLimiterFactory:
    """Creates limiters sharing one configuration.

    Example:
        >>> factory = RateLimiterFactory(
        ...     {"policy": "token_bucket", "id": "api", "limit": 10,
        ...      "rate": {"interval": "1 second", "amount": 1}},
        ...     InMemoryStorage(),
        ... )
        >>> limiter = factory.create("alice")  # id "api:alice"
    """

    def __init__(
        self,
        config: Any,
        storage: Storage,
        lock: Optional[Lock] = None,
        clock: Optional[Clock] = None,
    ):
        self.config = parse_limiter_config(config)
        self._storage = storage
        self._lock = lock
        self._clock = clock

    def create(self, key: Optional[str] = None) -> Limiter:
        """Create the limiter for ``key``.

        Args:
            key: Caller identity; the limiter id becomes ``"{config.id}:{key}"``.
                Without a key all callers share ``config.id``.
        """
        config = self.config
        id = f"{config.id}:{key}" if key is not None else config.id

        if isinstance(config, TokenBucketConfig):
            rate = Rate(duration_to_seconds(config.rate.interval), config.rate.amount)
            limiter: Limiter = TokenBucketLimiter(
                id, config.limit, rate, self._storage, lock=self._lock, clock=self._clock
            )
        elif isinstance(config, FixedWindowConfig):
            limiter = FixedWindowLimiter(
                id,
                config.limit,
                duration_to_seconds(config.interval),
                self._storage,
                lock=self._lock,
                clock=self._clock,
            )
        elif isinstance(config, SlidingWindowConfig):
            limiter = SlidingWindowLimiter(
                id,
                config.limit,
                duration_to_seconds(config.interval),
                self._storage,
                lock=self._lock,
                clock=self._clock,
            )
        elif isinstance(config, NoLimitConfig):
            limiter = NoLimiter(clock=self._clock)
        else:
            raise ConfigurationError(f"Unknown limiter policy: {config!r}")

        logger.debug(
            f"Created {config.policy} limiter '{id}'",
            extra=get_log_context(limiter_id=id, policy=config.policy),
        )
        return limiter


class CompoundRateLimiterFactory:
    """Creates a ``CompoundLimiter`` from several factories for the same key."""

    def __init__(self, factories: Sequence[RateLimiterFactory]):
        if not factories:
            raise ConfigurationError("CompoundRateLimiterFactory requires at least one factory")
        self.factories = list(factories)

    def create(self, key: Optional[str] = None) -> CompoundLimiter:
        return CompoundLimiter([factory.create(key) for factory in self.factories])

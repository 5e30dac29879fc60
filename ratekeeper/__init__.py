"""ratekeeper: pluggable rate limiting for asyncio applications.

Limiters decide whether a caller may proceed now (``consume``) or when it
may proceed (``reserve``). State lives in a ``Storage`` and every
load-compute-save cycle runs under a per-key ``Lock``.
"""

from ratekeeper.exceptions import (
    ConfigurationError,
    InvalidIntervalError,
    LockUnavailableError,
    MaxWaitDurationExceededError,
    RateLimitExceededError,
    RateLimiterError,
    ReserveNotSupportedError,
)
from ratekeeper.rate_limit import RateLimit, Reservation
from ratekeeper.limiter import Limiter, LimiterState
from ratekeeper.storage import InMemoryLock, InMemoryStorage, Lock, NoLock, Storage
from ratekeeper.policy import (
    MAX_SAFE_INTEGER,
    FixedWindowLimiter,
    NoLimiter,
    Rate,
    SlidingWindowLimiter,
    TokenBucketLimiter,
)
from ratekeeper.compound import CompoundLimiter
from ratekeeper.factory import CompoundRateLimiterFactory, RateLimiterFactory

__version__ = "0.1.0"

__all__ = [
    "RateLimiterError",
    "ConfigurationError",
    "InvalidIntervalError",
    "MaxWaitDurationExceededError",
    "ReserveNotSupportedError",
    "LockUnavailableError",
    "RateLimitExceededError",
    "RateLimit",
    "Reservation",
    "Limiter",
    "LimiterState",
    "Storage",
    "InMemoryStorage",
    "Lock",
    "NoLock",
    "InMemoryLock",
    "Rate",
    "TokenBucketLimiter",
    "FixedWindowLimiter",
    "SlidingWindowLimiter",
    "NoLimiter",
    "MAX_SAFE_INTEGER",
    "CompoundLimiter",
    "RateLimiterFactory",
    "CompoundRateLimiterFactory",
]

"""Rate limiting policies."""

from ratekeeper.policy.fixed_window import FixedWindowCounter, FixedWindowLimiter
from ratekeeper.policy.no_limit import MAX_SAFE_INTEGER, NoLimiter
from ratekeeper.policy.rate import Rate
from ratekeeper.policy.sliding_window import SlidingWindowCounter, SlidingWindowLimiter
from ratekeeper.policy.token_bucket import TokenBucket, TokenBucketLimiter

__all__ = [
    "Rate",
    "TokenBucket",
    "TokenBucketLimiter",
    "FixedWindowCounter",
    "FixedWindowLimiter",
    "SlidingWindowCounter",
    "SlidingWindowLimiter",
    "NoLimiter",
    "MAX_SAFE_INTEGER",
]

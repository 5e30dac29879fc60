"""Core utilities for ratekeeper."""

from ratekeeper.core.config import (
    FixedWindowConfig,
    LimiterConfig,
    NoLimitConfig,
    RateConfig,
    Settings,
    SlidingWindowConfig,
    TokenBucketConfig,
    parse_limiter_config,
    settings,
)
from ratekeeper.core.logging import get_log_context, get_logger, setup_logging
from ratekeeper.core.utils import Clock, Duration, duration_to_seconds, now, to_seconds

__all__ = [
    "Settings",
    "settings",
    "RateConfig",
    "TokenBucketConfig",
    "FixedWindowConfig",
    "SlidingWindowConfig",
    "NoLimitConfig",
    "LimiterConfig",
    "parse_limiter_config",
    "get_logger",
    "get_log_context",
    "setup_logging",
    "Clock",
    "Duration",
    "duration_to_seconds",
    "now",
    "to_seconds",
]

"""Tests for the limiter factories."""

import pytest

from ratekeeper.compound import CompoundLimiter
from ratekeeper.core.config import FixedWindowConfig
from ratekeeper.exceptions import ConfigurationError
from ratekeeper.factory import CompoundRateLimiterFactory, RateLimiterFactory
from ratekeeper.policy.fixed_window import FixedWindowLimiter
from ratekeeper.policy.no_limit import NoLimiter
from ratekeeper.policy.rate import Rate
from ratekeeper.policy.sliding_window import SlidingWindowLimiter
from ratekeeper.policy.token_bucket import TokenBucketLimiter


TOKEN_BUCKET = {
    "policy": "token_bucket",
    "id": "api",
    "limit": 10,
    "rate": {"interval": "1 minute", "amount": 5},
}


class TestRateLimiterFactory:
    """Tests for RateLimiterFactory."""

    def test_token_bucket(self, storage):
        limiter = RateLimiterFactory(TOKEN_BUCKET, storage).create("alice")
        assert isinstance(limiter, TokenBucketLimiter)
        assert limiter.id == "api:alice"
        assert limiter.capacity == 10
        assert limiter.rate == Rate(60, 5)

    def test_without_key_uses_config_id(self, storage):
        limiter = RateLimiterFactory(TOKEN_BUCKET, storage).create()
        assert limiter.id == "api"

    def test_fixed_window(self, storage):
        config = {"policy": "fixed_window", "id": "login", "limit": 5, "interval": "15 minutes"}
        limiter = RateLimiterFactory(config, storage).create("10.0.0.1")
        assert isinstance(limiter, FixedWindowLimiter)
        assert limiter.id == "login:10.0.0.1"
        assert limiter.interval == 900

    def test_sliding_window(self, storage):
        config = {"policy": "sliding_window", "id": "search", "limit": 100, "interval": "1 hour"}
        limiter = RateLimiterFactory(config, storage).create("bob")
        assert isinstance(limiter, SlidingWindowLimiter)
        assert limiter.interval == 3600

    def test_no_limit(self, storage):
        limiter = RateLimiterFactory({"policy": "no_limit", "id": "free"}, storage).create("x")
        assert isinstance(limiter, NoLimiter)

    def test_accepts_config_model(self, storage):
        config = FixedWindowConfig(id="api", limit=3, interval="10s")
        limiter = RateLimiterFactory(config, storage).create()
        assert limiter.interval == 10

    def test_invalid_config(self, storage):
        with pytest.raises(ConfigurationError):
            RateLimiterFactory({"policy": "leaky_bucket", "id": "api"}, storage)

    def test_zero_interval_rejected(self, storage):
        config = {"policy": "fixed_window", "id": "api", "limit": 5, "interval": "0 seconds"}
        with pytest.raises(ConfigurationError):
            RateLimiterFactory(config, storage).create()

    @pytest.mark.asyncio
    async def test_limiters_for_same_key_share_state(self, storage, clock):
        factory = RateLimiterFactory(TOKEN_BUCKET, storage, clock=clock)
        await factory.create("alice").consume(4)

        result = await factory.create("alice").consume(1)
        assert result.remaining == 5

        other = await factory.create("bob").consume(1)
        assert other.remaining == 9


class TestCompoundRateLimiterFactory:
    """Tests for CompoundRateLimiterFactory."""

    def test_requires_factories(self):
        with pytest.raises(ConfigurationError):
            CompoundRateLimiterFactory([])

    @pytest.mark.asyncio
    async def test_creates_compound_for_key(self, storage, clock):
        factory = CompoundRateLimiterFactory([
            RateLimiterFactory(
                {"policy": "fixed_window", "id": "burst", "limit": 2, "interval": "1 second"},
                storage,
                clock=clock,
            ),
            RateLimiterFactory(
                {"policy": "fixed_window", "id": "daily", "limit": 100, "interval": "1 day"},
                storage,
                clock=clock,
            ),
        ])
        limiter = factory.create("alice")
        assert isinstance(limiter, CompoundLimiter)
        assert [l.id for l in limiter.limiters] == ["burst:alice", "daily:alice"]

        await limiter.consume(1)
        second = await limiter.consume(1)
        assert second.accepted is True
        assert second.remaining == 0

        third = await limiter.consume(1)
        assert third.accepted is False
        assert third.retry_at == 1001

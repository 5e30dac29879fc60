"""Tests for the RateLimit and Reservation result types."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest

from ratekeeper.exceptions import RateLimitExceededError
from ratekeeper.rate_limit import RateLimit, Reservation


class TestRateLimit:
    """Tests for RateLimit."""

    def test_accepted_passes_through(self):
        result = RateLimit(3, 1000.0, True, 10)
        assert result.is_accepted() is True
        assert result.ensure_accepted() is result

    def test_rejected_raises(self):
        """ensure_accepted() turns a rejection into an exception."""
        result = RateLimit(0, 1030.0, False, 10)
        with pytest.raises(RateLimitExceededError) as exc_info:
            result.ensure_accepted()

        error = exc_info.value
        assert error.rate_limit is result
        assert error.retry_at == 1030.0
        assert error.remaining == 0
        assert error.limit == 10

    def test_retry_after_is_utc_datetime(self):
        result = RateLimit(0, 0.0, False, 1)
        assert result.retry_after == datetime(1970, 1, 1, tzinfo=timezone.utc)

    def test_seconds_until_retry(self, clock):
        result = RateLimit(0, 1012.5, False, 1, clock=clock)
        assert result.seconds_until_retry() == 12.5
        clock.advance(20)
        assert result.seconds_until_retry() == 0.0

    def test_immutable(self):
        result = RateLimit(1, 0.0, True, 1)
        with pytest.raises(AttributeError):
            result.remaining = 5

    def test_equality_ignores_clock(self, clock):
        assert RateLimit(1, 5.0, True, 2, clock=clock) == RateLimit(1, 5.0, True, 2)

    @pytest.mark.asyncio
    async def test_wait_sleeps_until_retry(self, clock):
        result = RateLimit(0, 1003.0, False, 1, clock=clock)
        with patch("ratekeeper.rate_limit.asyncio.sleep", new_callable=AsyncMock) as sleep:
            await result.wait()
        sleep.assert_awaited_once_with(3.0)

    @pytest.mark.asyncio
    async def test_wait_returns_when_due(self, clock):
        result = RateLimit(0, 999.0, False, 1, clock=clock)
        with patch("ratekeeper.rate_limit.asyncio.sleep", new_callable=AsyncMock) as sleep:
            await result.wait()
        sleep.assert_not_awaited()


class TestReservation:
    """Tests for Reservation."""

    def test_wait_duration_recomputed(self, clock):
        """The wait shrinks as time passes and never goes negative."""
        reservation = Reservation(1005.0, RateLimit(0, 1005.0, True, 1), clock=clock)
        assert reservation.wait_duration() == 5.0
        clock.advance(2)
        assert reservation.wait_duration() == 3.0
        clock.advance(10)
        assert reservation.wait_duration() == 0.0

    @pytest.mark.asyncio
    async def test_wait(self, clock):
        reservation = Reservation(1001.5, RateLimit(0, 1001.5, True, 1), clock=clock)
        with patch("ratekeeper.rate_limit.asyncio.sleep", new_callable=AsyncMock) as sleep:
            await reservation.wait()
        sleep.assert_awaited_once_with(1.5)

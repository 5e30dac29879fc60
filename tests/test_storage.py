"""Tests for InMemoryStorage."""

import logging

import pytest

from ratekeeper.policy.fixed_window import FixedWindowCounter, FixedWindowLimiter
from ratekeeper.storage import InMemoryStorage
from ratekeeper.storage.memory import _StorageEntry


def _counter(id: str, hits: int = 0, window_start: float = 960.0) -> FixedWindowCounter:
    return FixedWindowCounter(id, hits, window_start, 60, 10)


class TestStorageEntry:
    """Tests for the internal _StorageEntry class."""

    def test_entry_no_expiry(self):
        """Entry without expiry never expires."""
        entry = _StorageEntry(payload=b"{}", expires_at=None)
        assert not entry.is_expired(10**12)

    def test_entry_expires_at_boundary(self):
        """Entry is expired from its expiration time onward."""
        entry = _StorageEntry(payload=b"{}", expires_at=100.0)
        assert not entry.is_expired(99.9)
        assert entry.is_expired(100.0)


class TestInMemoryStorage:
    """Tests for the InMemoryStorage implementation."""

    @pytest.mark.asyncio
    async def test_save_and_fetch(self, storage):
        """Can store and retrieve state."""
        await storage.save(_counter("api", 3))
        state = await storage.fetch("api")
        assert state == _counter("api", 3)

    @pytest.mark.asyncio
    async def test_fetch_missing(self, storage):
        """Missing ids return None."""
        assert await storage.fetch("nope") is None

    @pytest.mark.asyncio
    async def test_fetch_returns_copy(self, storage):
        """Mutating a fetched state does not change what is stored."""
        await storage.save(_counter("api", 3))
        state = await storage.fetch("api")
        state.hit_count = 9

        again = await storage.fetch("api")
        assert again.hit_count == 3

    @pytest.mark.asyncio
    async def test_save_replaces(self, storage):
        await storage.save(_counter("api", 1))
        await storage.save(_counter("api", 2))
        assert (await storage.fetch("api")).hit_count == 2
        assert storage.size() == 1

    @pytest.mark.asyncio
    async def test_expired_state_is_dropped(self, storage, clock):
        """State past its expiration time is no longer returned."""
        await storage.save(_counter("api"))  # expires at 1020
        clock.set(1019.0)
        assert await storage.fetch("api") is not None

        clock.set(1020.0)
        assert await storage.fetch("api") is None
        assert storage.size() == 0

    @pytest.mark.asyncio
    async def test_delete(self, storage):
        await storage.save(_counter("api"))
        await storage.delete("api")
        await storage.delete("api")
        assert await storage.fetch("api") is None

    @pytest.mark.asyncio
    async def test_clear(self, storage):
        await storage.save(_counter("a"))
        await storage.save(_counter("b"))
        storage.clear()
        assert storage.size() == 0

    @pytest.mark.asyncio
    async def test_cleanup_expired(self, storage, clock):
        """cleanup_expired removes only expired entries."""
        await storage.save(_counter("old", window_start=900.0))  # expires at 960
        await storage.save(_counter("new", window_start=1020.0))  # expires at 1080

        clock.set(1000.0)
        removed = await storage.cleanup_expired()
        assert removed == 1
        assert storage.size() == 1
        assert await storage.fetch("new") is not None

    @pytest.mark.asyncio
    async def test_lru_eviction(self, clock):
        """Least recently used entries are evicted beyond max_entries."""
        storage = InMemoryStorage(max_entries=5, clock=clock)
        for i in range(5):
            await storage.save(_counter(f"key{i}"))

        # Touch key0 so key1 becomes the least recently used
        await storage.fetch("key0")
        await storage.save(_counter("key5"))

        assert storage.size() == 5
        assert await storage.fetch("key0") is not None
        assert await storage.fetch("key1") is None
        assert await storage.fetch("key5") is not None

    @pytest.mark.asyncio
    async def test_expired_entries_evicted_before_live_ones(self, clock):
        """A throttled key survives a full store while expired entries exist."""
        storage = InMemoryStorage(max_entries=5, clock=clock)
        victim = FixedWindowLimiter("victim", 1, 60, storage, clock=clock)
        assert (await victim.consume(1)).accepted is True
        assert (await victim.consume(1)).accepted is False

        for i in range(4):
            await storage.save(_counter(f"stale{i}", window_start=900.0))  # expired at 960

        other = FixedWindowLimiter("other", 1, 60, storage, clock=clock)
        await other.consume(1)

        assert storage.size() == 2
        assert (await victim.consume(1)).accepted is False

    @pytest.mark.asyncio
    async def test_live_eviction_is_logged(self, clock, caplog):
        """Evicting live state is reported as a warning."""
        storage = InMemoryStorage(max_entries=1, clock=clock)
        await storage.save(_counter("a"))
        with caplog.at_level(logging.WARNING, logger="ratekeeper"):
            await storage.save(_counter("b"))

        assert await storage.fetch("a") is None
        assert any("evicted 1 live" in r.getMessage() for r in caplog.records)

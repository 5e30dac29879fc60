"""In-memory storage for limiter state.

State is kept as serialized bytes so callers always get an independent copy
back from ``fetch()``; mutating a fetched state never touches the stored one
until it is saved again.
"""

import asyncio
from collections import OrderedDict
from dataclasses import dataclass
from typing import Optional

from ratekeeper.core.config import settings
from ratekeeper.core.logging import get_logger
from ratekeeper.core.utils import Clock, now
from ratekeeper.limiter import LimiterState
from ratekeeper.storage.base import Storage
from ratekeeper.storage.serializer import dumps_state, loads_state

logger = get_logger(__name__)


@dataclass
class _StorageEntry:
    """Internal storage entry with expiration tracking."""

    payload: bytes
    expires_at: Optional[float] = None

    def is_expired(self, current: float) -> bool:
        if self.expires_at is None:
            return False
        return current >= self.expires_at


class InMemoryStorage(Storage):
    """Process-local storage with expiration and LRU bounding.

    Data is lost when the process exits. Create one instance per isolated
    scope (for example one per test) and pass it to the limiters that should
    share state.

    Memory optimization:
    - Uses OrderedDict for LRU behavior
    - Once ``max_entries`` is exceeded, drops expired entries, then evicts
      the least recently used 20% of live ones
    """

    def __init__(self, max_entries: Optional[int] = None, clock: Optional[Clock] = None) -> None:
        """Initialize the storage.

        Args:
            max_entries: Maximum number of ids kept (defaults to
                ``settings.storage_max_entries``)
            clock: Time source used for expiration checks
        """
        self._data: OrderedDict[str, _StorageEntry] = OrderedDict()
        self._max_entries = max_entries or settings.storage_max_entries
        self._clock = clock or now
        self._lock = asyncio.Lock()

    async def save(self, state: LimiterState) -> None:
        async with self._lock:
            self._data[state.id] = _StorageEntry(
                payload=dumps_state(state),
                expires_at=state.expiration_time(),
            )
            self._data.move_to_end(state.id)
            self._enforce_lru_limit()

    async def fetch(self, id: str) -> Optional[LimiterState]:
        async with self._lock:
            entry = self._data.get(id)
            if entry is None:
                return None
            if entry.is_expired(self._clock()):
                del self._data[id]
                return None
            self._data.move_to_end(id)
            return loads_state(entry.payload)

    async def delete(self, id: str) -> None:
        async with self._lock:
            self._data.pop(id, None)

    def clear(self) -> None:
        """Drop every stored state."""
        self._data.clear()

    def size(self) -> int:
        """Number of stored entries, including expired ones not yet evicted."""
        return len(self._data)

    async def cleanup_expired(self) -> int:
        """Remove all expired entries.

        Returns:
            Number of entries removed.
        """
        async with self._lock:
            return self._drop_expired()

    def _drop_expired(self) -> int:
        current = self._clock()
        expired = [key for key, entry in self._data.items() if entry.is_expired(current)]
        for key in expired:
            del self._data[key]
        return len(expired)

    def _enforce_lru_limit(self) -> None:
        """Keep at most ``max_entries`` ids.

        Expired entries go first. Only if that is not enough are live entries
        evicted, least recently used first; an evicted id starts over as a
        fresh limiter, so its limit is loosened until it fills up again.
        """
        if len(self._data) <= self._max_entries:
            return
        self._drop_expired()
        if len(self._data) <= self._max_entries:
            return

        remove_count = max(1, int(self._max_entries * 0.2))
        evicted = []
        for _ in range(min(remove_count, len(self._data) - 1)):
            key, _ = self._data.popitem(last=False)
            evicted.append(key)
        logger.warning(
            f"Storage full ({self._max_entries} entries): evicted {len(evicted)} live limiter states",
            extra={"evicted": evicted},
        )

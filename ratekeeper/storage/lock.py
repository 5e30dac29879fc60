"""Per-key locking used to make load-compute-save atomic.

``NoLock`` performs no synchronisation at all and is only correct when the
caller already serialises every operation on a given key. ``InMemoryLock``
serialises coroutines of a single event loop. Cross-process locks (Redis,
database advisory locks, ...) implement the same ``Lock`` contract.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Dict, Optional, TypeVar

from ratekeeper.core.config import settings
from ratekeeper.core.logging import get_log_context, get_logger
from ratekeeper.exceptions import LockUnavailableError

logger = get_logger(__name__)

T = TypeVar("T")


class Lock(ABC):
    """Mutual exclusion by key."""

    @abstractmethod
    async def acquire(self, key: str, ttl: Optional[float] = None) -> bool:
        """Acquire the lock for ``key``.

        Args:
            key: Resource identifier to lock
            ttl: Lease length in seconds for implementations that expire
                locks held by crashed owners

        Returns:
            True if the lock was acquired, False otherwise
        """

    @abstractmethod
    async def release(self, key: str) -> None:
        """Release the lock for ``key``."""

    async def with_lock(
        self,
        key: str,
        fn: Callable[[], Awaitable[T]],
        ttl: Optional[float] = None,
    ) -> T:
        """Run ``fn`` while holding the lock for ``key``.

        The lock is released on every exit path, including exceptions raised
        by ``fn``. ``ttl`` defaults to ``settings.lock_default_ttl``.

        Raises:
            LockUnavailableError: If the lock could not be acquired
        """
        if ttl is None:
            ttl = settings.lock_default_ttl
        if not await self.acquire(key, ttl):
            logger.warning(
                f"Lock unavailable for '{key}'",
                extra=get_log_context(limiter_id=key),
            )
            raise LockUnavailableError(key)
        try:
            return await fn()
        finally:
            await self.release(key)


class NoLock(Lock):
    """Lock that never blocks; for single-process, externally serialised use."""

    async def acquire(self, key: str, ttl: Optional[float] = None) -> bool:
        return True

    async def release(self, key: str) -> None:
        pass

    async def with_lock(
        self,
        key: str,
        fn: Callable[[], Awaitable[T]],
        ttl: Optional[float] = None,
    ) -> T:
        return await fn()


class InMemoryLock(Lock):
    """Per-key ``asyncio.Lock`` for coroutines sharing one event loop.

    ``ttl`` is accepted for interface compatibility and ignored: a lock held
    inside this process cannot outlive its owner. A key's lock is dropped
    from the registry once nobody holds or waits for it.
    """

    def __init__(self, acquire_timeout: Optional[float] = None) -> None:
        """Initialize the lock registry.

        Args:
            acquire_timeout: Seconds to wait for a busy key before giving up
                (defaults to ``settings.lock_acquire_timeout``)
        """
        if acquire_timeout is None:
            acquire_timeout = settings.lock_acquire_timeout
        self._acquire_timeout = acquire_timeout
        self._locks: Dict[str, asyncio.Lock] = {}
        # Holders plus waiters per key
        self._users: Dict[str, int] = {}
        self._locks_lock = asyncio.Lock()

    async def _get_lock(self, key: str) -> asyncio.Lock:
        async with self._locks_lock:
            self._users[key] = self._users.get(key, 0) + 1
            return self._locks.setdefault(key, asyncio.Lock())

    async def _put_lock(self, key: str) -> None:
        async with self._locks_lock:
            users = self._users.get(key, 0) - 1
            if users > 0:
                self._users[key] = users
            else:
                self._users.pop(key, None)
                self._locks.pop(key, None)

    async def acquire(self, key: str, ttl: Optional[float] = None) -> bool:
        lock = await self._get_lock(key)
        if self._acquire_timeout <= 0:
            # Try once without waiting
            if lock.locked():
                await self._put_lock(key)
                return False
            await lock.acquire()
            return True
        try:
            await asyncio.wait_for(lock.acquire(), timeout=self._acquire_timeout)
        except asyncio.TimeoutError:
            await self._put_lock(key)
            return False
        except asyncio.CancelledError:
            await self._put_lock(key)
            raise
        return True

    async def release(self, key: str) -> None:
        lock = self._locks.get(key)
        if lock is not None and lock.locked():
            lock.release()
            await self._put_lock(key)

    def locked(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    def size(self) -> int:
        """Number of keys currently held or waited for."""
        return len(self._locks)

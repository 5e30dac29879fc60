"""Storage contract for limiter state."""

from abc import ABC, abstractmethod
from typing import Optional

from ratekeeper.limiter import LimiterState


class Storage(ABC):
    """Abstract base class for limiter state storage.

    Implementations may keep state in memory, Redis, a database or anything
    else. They must keep entries for unrelated ids independent under
    concurrent use; ordering across ids is not required.
    """

    @abstractmethod
    async def save(self, state: LimiterState) -> None:
        """Insert or replace the state stored under ``state.id``.

        The state's ``expiration_time()`` is persisted alongside it so the
        backend can evict it once it is no longer meaningful.
        """

    @abstractmethod
    async def fetch(self, id: str) -> Optional[LimiterState]:
        """Return the state stored under ``id``.

        Returns:
            The state, or None if absent or past its expiration time.
        """

    @abstractmethod
    async def delete(self, id: str) -> None:
        """Remove the state stored under ``id``; missing ids are ignored."""

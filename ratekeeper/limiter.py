"""Interfaces shared by every limiter and every persisted limiter state."""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from ratekeeper.core.utils import Duration
from ratekeeper.exceptions import ConfigurationError
from ratekeeper.rate_limit import RateLimit, Reservation


class Limiter(ABC):
    """Contract for all rate limiters.

    Two usage patterns are offered:

    - ``consume()``: try to take tokens now and report the outcome.
    - ``reserve()``: take tokens now or in the future and report when the
      caller may act.
    """

    @abstractmethod
    async def consume(self, tokens: int = 1) -> RateLimit:
        """Try to consume tokens immediately.

        Args:
            tokens: Number of tokens to consume

        Returns:
            RateLimit describing whether the tokens were granted
        """

    @abstractmethod
    async def reserve(self, tokens: int = 1, max_wait: Optional[Duration] = None) -> Reservation:
        """Reserve tokens, waiting for future capacity if needed.

        Args:
            tokens: Number of tokens to reserve
            max_wait: Longest acceptable wait (seconds or timedelta), or None
                for no ceiling

        Returns:
            Reservation telling the caller when to act

        Raises:
            MaxWaitDurationExceededError: If the wait would exceed ``max_wait``
        """

    @abstractmethod
    async def reset(self) -> None:
        """Forget all persisted state for this limiter."""


class LimiterState(ABC):
    """Persistable state of a single limiter key."""

    id: str

    @abstractmethod
    def expiration_time(self) -> Optional[float]:
        """Epoch seconds after which the state may be discarded, or None."""

    @abstractmethod
    def to_dict(self) -> Dict[str, Any]:
        """Convert to a dictionary for serialization."""


def check_tokens(tokens: int) -> None:
    """Reject token counts no limiter can serve."""
    if tokens < 1:
        raise ConfigurationError(f"Token count must be at least 1, got {tokens}")

"""Combine several limiters with AND semantics."""

import asyncio
from typing import List, Optional, Sequence

from ratekeeper.core.logging import get_logger
from ratekeeper.core.utils import Duration
from ratekeeper.exceptions import ConfigurationError, ReserveNotSupportedError
from ratekeeper.limiter import Limiter
from ratekeeper.rate_limit import RateLimit, Reservation

logger = get_logger(__name__)


class CompoundLimiter(Limiter):
    """Accepts a request only if every underlying limiter accepts it.

    Every limiter is charged on ``consume()`` even when another one rejects:
    there is no rollback. The combined outcome is the most restrictive one:

    - any rejection: the rejection with the latest ``retry_at``
    - all accepted: the acceptance with the fewest ``remaining`` tokens

    ``reserve()`` is not supported. Reserving across independently locked
    limiters cannot be made atomic without a two-phase protocol.
    """

    def __init__(self, limiters: Sequence[Limiter]):
        if not limiters:
            raise ConfigurationError("CompoundLimiter requires at least one limiter")
        self.limiters: List[Limiter] = list(limiters)

    async def consume(self, tokens: int = 1) -> RateLimit:
        results = await asyncio.gather(*(limiter.consume(tokens) for limiter in self.limiters))
        result = most_restrictive(results)
        logger.debug(
            f"Compound of {len(results)} limiters: {'accepted' if result.accepted else 'rejected'} {tokens} tokens"
        )
        return result

    async def reserve(self, tokens: int = 1, max_wait: Optional[Duration] = None) -> Reservation:
        raise ReserveNotSupportedError(
            "CompoundLimiter does not support the reserve() method. Use consume() instead."
        )

    async def reset(self) -> None:
        await asyncio.gather(*(limiter.reset() for limiter in self.limiters))


def most_restrictive(results: Sequence[RateLimit]) -> RateLimit:
    """Pick the outcome the caller must honour; ties keep the earlier one."""
    chosen = results[0]
    for result in results[1:]:
        if chosen.accepted and not result.accepted:
            chosen = result
        elif not chosen.accepted and not result.accepted:
            if result.retry_at > chosen.retry_at:
                chosen = result
        elif chosen.accepted and result.accepted:
            if result.remaining < chosen.remaining:
                chosen = result
    return chosen

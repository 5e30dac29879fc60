"""Refill rate used by the token bucket."""

import math
from dataclasses import dataclass

from ratekeeper.core.utils import duration_to_seconds
from ratekeeper.exceptions import InvalidIntervalError


@dataclass(frozen=True)
class Rate:
    """``amount`` tokens are added every ``interval`` seconds.

    Refill rounds down and waits round up, so a bucket never credits tokens
    early and callers never wake up too soon.
    """

    interval: float
    amount: int

    def __post_init__(self) -> None:
        if self.interval < 1:
            raise InvalidIntervalError(
                f"Interval must be at least 1 second, got {self.interval}"
            )
        if self.amount < 1 or self.amount != int(self.amount):
            raise InvalidIntervalError(f"Amount must be a whole number of at least 1, got {self.amount}")

    @classmethod
    def per_second(cls, amount: int) -> "Rate":
        return cls(1, amount)

    @classmethod
    def per_minute(cls, amount: int) -> "Rate":
        return cls(60, amount)

    @classmethod
    def per_hour(cls, amount: int) -> "Rate":
        return cls(3600, amount)

    @classmethod
    def per_day(cls, amount: int) -> "Rate":
        return cls(86400, amount)

    @classmethod
    def per_week(cls, amount: int) -> "Rate":
        return cls(604800, amount)

    @classmethod
    def per_month(cls, amount: int) -> "Rate":
        """30-day month."""
        return cls(2592000, amount)

    @classmethod
    def per_year(cls, amount: int) -> "Rate":
        """365-day year."""
        return cls(31536000, amount)

    @classmethod
    def from_string(cls, rate_string: str) -> "Rate":
        """Parse ``"{interval}-{amount}"``, e.g. ``"1 hour-100"``.

        Raises:
            ValueError: If the string is malformed.
            InvalidIntervalError: If the parsed values are out of range.
        """
        parts = rate_string.split("-")
        if len(parts) != 2:
            raise ValueError(
                f'Invalid rate format: {rate_string}. Expected format: "interval-amount"'
            )
        interval_str, amount_str = parts
        interval = duration_to_seconds(interval_str.strip())
        try:
            amount = int(amount_str.strip())
        except ValueError:
            raise ValueError(f"Invalid amount in rate string: {amount_str}") from None
        return cls(interval, amount)

    @property
    def refill_interval(self) -> float:
        """Seconds needed to produce a single token."""
        return self.interval / self.amount

    def time_for_tokens(self, tokens: float) -> int:
        """Whole seconds needed to accumulate ``tokens`` tokens."""
        return math.ceil(tokens * self.interval / self.amount)

    def tokens_during(self, seconds: float) -> int:
        """Whole tokens produced over ``seconds`` seconds."""
        if seconds <= 0:
            return 0
        return math.floor(seconds * self.amount / self.interval)

    def next_token_at(self, now: float) -> float:
        return now + self.refill_interval

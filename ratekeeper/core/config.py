"""Configuration for ratekeeper.

Two kinds of configuration live here:

* ``Settings``: process-wide knobs (logging, lock timeouts, storage bounds)
  loaded from ``RATEKEEPER_*`` environment variables or a ``.env`` file.
* Limiter configuration models: a discriminated union keyed by ``policy``
  that describes one limiter (algorithm, id namespace, limits, intervals).
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ratekeeper.core.utils import duration_to_seconds
from ratekeeper.exceptions import ConfigurationError


class Settings(BaseSettings):
    """Process settings loaded from environment variables.

    All settings can be configured via ``RATEKEEPER_<NAME>`` environment
    variables or a ``.env`` file.
    """

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    # Lock settings
    lock_acquire_timeout: float = 5.0  # Seconds InMemoryLock waits for a key
    lock_default_ttl: float = 30.0  # Lease length handed to distributed locks

    # In-memory storage settings
    storage_max_entries: int = 10000  # LRU bound for InMemoryStorage

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate the log format is one we can render."""
        normalized = v.strip().lower()
        if normalized not in ("text", "structured", "json"):
            raise ValueError("log_format must be one of: text, structured, json")
        return normalized

    @field_validator("lock_acquire_timeout", "lock_default_ttl")
    @classmethod
    def validate_positive_seconds(cls, v: float) -> float:
        """Validate lock timings are positive."""
        if v <= 0:
            raise ValueError("Lock timings must be positive")
        return v

    @field_validator("storage_max_entries")
    @classmethod
    def validate_max_entries(cls, v: int) -> int:
        """Validate storage bound is positive."""
        if v < 1:
            raise ValueError("storage_max_entries must be at least 1")
        return v

    model_config = SettingsConfigDict(
        env_prefix="RATEKEEPER_", env_file=".env", extra="ignore"
    )


# Global settings instance
settings = Settings()


def _check_duration(v: str) -> str:
    duration_to_seconds(v)
    return v


class RateConfig(BaseModel):
    """Refill rate of a token bucket: ``amount`` tokens every ``interval``."""

    interval: str
    amount: int = Field(ge=1)

    @field_validator("interval")
    @classmethod
    def validate_interval(cls, v: str) -> str:
        return _check_duration(v)


class TokenBucketConfig(BaseModel):
    """Token bucket limiter; ``limit`` is the burst size."""

    policy: Literal["token_bucket"] = "token_bucket"
    id: str = Field(min_length=1)
    limit: int = Field(ge=1)
    rate: RateConfig


class FixedWindowConfig(BaseModel):
    """Fixed window limiter allowing ``limit`` hits per aligned ``interval``."""

    policy: Literal["fixed_window"] = "fixed_window"
    id: str = Field(min_length=1)
    limit: int = Field(ge=1)
    interval: str

    @field_validator("interval")
    @classmethod
    def validate_interval(cls, v: str) -> str:
        return _check_duration(v)


class SlidingWindowConfig(BaseModel):
    """Sliding window limiter allowing ``limit`` hits per rolling ``interval``."""

    policy: Literal["sliding_window"] = "sliding_window"
    id: str = Field(min_length=1)
    limit: int = Field(ge=1)
    interval: str

    @field_validator("interval")
    @classmethod
    def validate_interval(cls, v: str) -> str:
        return _check_duration(v)


class NoLimitConfig(BaseModel):
    """Limiter that never rejects."""

    policy: Literal["no_limit"] = "no_limit"
    id: str = Field(min_length=1)


LimiterConfig = Annotated[
    Union[TokenBucketConfig, FixedWindowConfig, SlidingWindowConfig, NoLimitConfig],
    Field(discriminator="policy"),
]

_limiter_config_adapter: TypeAdapter[Any] = TypeAdapter(LimiterConfig)


def parse_limiter_config(raw: Any) -> Union[
    TokenBucketConfig, FixedWindowConfig, SlidingWindowConfig, NoLimitConfig
]:
    """Validate a limiter configuration.

    Args:
        raw: A mapping such as ``{"policy": "fixed_window", "id": "api",
            "limit": 100, "interval": "1 minute"}`` or an already built model.

    Returns:
        The validated configuration model.

    Raises:
        ConfigurationError: If the configuration is missing fields, names an
            unknown policy or carries invalid values.
    """
    if isinstance(raw, (TokenBucketConfig, FixedWindowConfig, SlidingWindowConfig, NoLimitConfig)):
        return raw
    try:
        return _limiter_config_adapter.validate_python(raw)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid limiter configuration: {e}") from e

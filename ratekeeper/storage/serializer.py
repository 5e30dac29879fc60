"""Lossless JSON encoding of limiter state.

State classes register themselves under a type tag with
``register_state``; the tag is written next to the state's fields so
``loads_state`` can rebuild the right class.
"""

import json
from typing import Any, Callable, Dict, Type, TypeVar

from ratekeeper.limiter import LimiterState

S = TypeVar("S", bound=Type[LimiterState])

_TYPE_FIELD = "type"
_registry: Dict[str, Type[LimiterState]] = {}


def register_state(type_name: str) -> Callable[[S], S]:
    """Class decorator registering a state class under ``type_name``."""

    def decorator(cls: S) -> S:
        _registry[type_name] = cls
        cls.state_type = type_name  # type: ignore[attr-defined]
        return cls

    return decorator


def state_to_dict(state: LimiterState) -> Dict[str, Any]:
    type_name = getattr(state, "state_type", None)
    if type_name not in _registry:
        raise TypeError(f"Unregistered state type: {type(state).__name__}")
    data = state.to_dict()
    data[_TYPE_FIELD] = type_name
    return data


def state_from_dict(data: Dict[str, Any]) -> LimiterState:
    payload = dict(data)
    type_name = payload.pop(_TYPE_FIELD, None)
    cls = _registry.get(type_name) if type_name is not None else None
    if cls is None:
        raise ValueError(f"Unknown state type: {type_name!r}")
    return cls.from_dict(payload)  # type: ignore[attr-defined]


def dumps_state(state: LimiterState) -> bytes:
    """Serialize a state object to JSON bytes.

    Floats are written with ``repr`` precision by ``json``, so timestamps
    survive the round trip unchanged.
    """
    return json.dumps(state_to_dict(state), separators=(",", ":")).encode("utf-8")


def loads_state(raw: bytes) -> LimiterState:
    """Rebuild a state object from ``dumps_state`` output."""
    return state_from_dict(json.loads(raw))

"""Storage and lock capabilities consumed by the limiters."""

from ratekeeper.storage.base import Storage
from ratekeeper.storage.lock import InMemoryLock, Lock, NoLock
from ratekeeper.storage.memory import InMemoryStorage
from ratekeeper.storage.serializer import dumps_state, loads_state, register_state

__all__ = [
    "Storage",
    "InMemoryStorage",
    "Lock",
    "NoLock",
    "InMemoryLock",
    "dumps_state",
    "loads_state",
    "register_state",
]

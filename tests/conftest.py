"""Shared fixtures for ratekeeper tests."""

import pytest

from ratekeeper.storage import InMemoryStorage


class FakeClock:
    """Manually driven clock returning epoch seconds."""

    def __init__(self, start: float = 0.0):
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds

    def set(self, value: float) -> None:
        self.current = value


@pytest.fixture
def clock():
    return FakeClock(1000.0)


@pytest.fixture
def storage(clock):
    return InMemoryStorage(clock=clock)

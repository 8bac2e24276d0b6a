"""
Shared fixtures for FounderFlow tests.
"""

from datetime import datetime

import pytest

from founderflow.flow import AppState, FlowStore, FounderFlow
from founderflow.utils.clock import MINUTE_MS, to_ms

# Wednesday, mid-morning
WEDNESDAY_10AM = datetime(2026, 3, 4, 10, 0)


class FakeClock:
    """Epoch-ms clock that only moves when told to."""

    def __init__(self, start: datetime = WEDNESDAY_10AM):
        self.now = to_ms(start)

    def __call__(self) -> int:
        return self.now

    def advance(self, minutes: float = 0, ms: int = 0) -> int:
        self.now += int(minutes * MINUTE_MS) + ms
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "test.db")


@pytest.fixture
def store(db_path):
    store = FlowStore(db_path=db_path)
    yield store
    store.close()


@pytest.fixture
def state():
    return AppState()


@pytest.fixture
def app(db_path, clock):
    """A loaded core that declines focus switches unless a test says otherwise."""
    flow = FounderFlow(db_path=db_path, clock=clock)
    flow.load()
    yield flow
    flow.store.close()

"""Shared fixtures for tip pool unit tests."""

import copy
from datetime import datetime, timedelta

import pytest

from tippool.sdk import PersistenceError, PoolSettings, TeamState, TipPool


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class MemoryStore:
    """In-memory PoolStore that round-trips through to_dict/from_dict.

    Set fail_saves to make the next N saves raise PersistenceError.
    """

    def __init__(self, settings: PoolSettings = None):
        self.settings = settings or PoolSettings()
        self.documents = {}
        self.fail_saves = 0
        self.fail_loads = 0
        self.save_count = 0

    async def load(self, team_id: str) -> TeamState:
        if self.fail_loads:
            self.fail_loads -= 1
            raise PersistenceError("load failed")
        document = self.documents.get(team_id)
        if document is None:
            return TeamState(team_id=team_id, settings=self.settings)
        return TeamState.from_dict(copy.deepcopy(document), PoolSettings.model_validate(document["settings"]))

    async def save(self, team_id: str, state: TeamState) -> None:
        if self.fail_saves:
            self.fail_saves -= 1
            raise PersistenceError("disk full")
        self.documents[team_id] = copy.deepcopy(state.to_dict())
        self.save_count += 1


@pytest.fixture
def clock():
    # Monday 8 April 2024, 10:00
    return FakeClock(datetime(2024, 4, 8, 10, 0))


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def make_pool(store, clock):
    """Build a TipPool on the in-memory store without watcher tasks."""
    def _make(team_id="bar", **kwargs):
        kwargs.setdefault("watch_auto_close", False)
        return TipPool(team_id, store, clock=clock, **kwargs)
    return _make

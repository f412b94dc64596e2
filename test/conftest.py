"""
Shared fixtures: every test gets its own data directory and a controllable clock.
"""

import pytest

from flatchat.modules.chat.chat_service import ChatService
from flatchat.modules.chat.record_store import RecordStore
from flatchat.modules.presence.presence_policy import PresencePolicy
from flatchat.modules.presence.roster_store import RosterStore

T0 = 1_700_000_000


class FakeClock:
    def __init__(self, start: int = T0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: int) -> int:
        self.now += seconds
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def records(tmp_path):
    store = RecordStore(tmp_path / "chat.log", lock_timeout=0.5)
    store.ensure()
    return store


@pytest.fixture
def roster(tmp_path):
    store = RosterStore(tmp_path / "users.json", lock_timeout=0.5)
    store.ensure()
    return store


@pytest.fixture
def policy(records, roster):
    return PresencePolicy(records, roster)


@pytest.fixture
def service(records, roster, clock):
    return ChatService(records, roster, clock=clock)

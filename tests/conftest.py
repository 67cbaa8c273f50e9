from datetime import datetime, timedelta, timezone

import pytest

from jointventure.core.change_feed import LocalChangeFeed
from jointventure.services.trips.chat_service import ChatService
from jointventure.services.trips.participation import ParticipationService
from tests.fakes import FakeCache, InMemoryTripStore

HOST_ID = 1
GUEST_ID = 2
OTHER_ID = 3

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def store():
    store = InMemoryTripStore()
    store.add_profile(HOST_ID, "Hana Host", personality_tags=["Planner"])
    store.add_profile(GUEST_ID, "Gita Guest")
    store.add_profile(OTHER_ID, "Omar Other")
    return store


@pytest.fixture
def feed():
    return LocalChangeFeed()


@pytest.fixture
def cache():
    return FakeCache()


@pytest.fixture
def trip(store):
    return store.add_trip(HOST_ID, NOW + timedelta(days=3), max_people=4)


@pytest.fixture
def participation(store, feed):
    return ParticipationService(store, feed)


@pytest.fixture
def chat(store, feed, participation):
    return ChatService(store, feed, participation)

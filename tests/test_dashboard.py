import logging
from datetime import timedelta

import pytest

from jointventure.models.trips.trip_participant import ParticipantStatus
from jointventure.services.dashboard.dashboard_service import (
    UNKNOWN_TRIP_LABEL,
    DashboardService,
    next_upcoming,
)
from jointventure.services.trips.trip_service import attach_creators
from tests.conftest import GUEST_ID, HOST_ID, NOW, OTHER_ID


@pytest.fixture
def dashboard(store):
    return DashboardService(store)


async def test_next_trip_is_earliest_future_trip_across_hosted_and_joined(dashboard, store):
    store.add_trip(HOST_ID, NOW + timedelta(days=3), start_location="Hosted")
    soon = store.add_trip(OTHER_ID, NOW + timedelta(days=1), start_location="Soon")
    past = store.add_trip(OTHER_ID, NOW - timedelta(days=1), start_location="Past")
    store.add_participant(soon.id, HOST_ID, ParticipantStatus.APPROVED)
    store.add_participant(past.id, HOST_ID, ParticipantStatus.APPROVED)

    result = await dashboard.build(HOST_ID, now=NOW)

    assert [t.start_location for t in result.hosted] == ["Hosted"]
    assert [t.start_location for t in result.joined] == ["Past", "Soon"]
    assert result.next_trip.id == soon.id
    assert result.next_trip.creator.full_name == "Omar Other"


async def test_joined_lists_only_approved_trips(dashboard, store):
    pending = store.add_trip(OTHER_ID, NOW + timedelta(days=2))
    rejected = store.add_trip(OTHER_ID, NOW + timedelta(days=4))
    store.add_participant(pending.id, GUEST_ID, ParticipantStatus.PENDING)
    store.add_participant(rejected.id, GUEST_ID, ParticipantStatus.REJECTED)

    result = await dashboard.build(GUEST_ID, now=NOW)
    assert result.joined == []
    assert result.next_trip is None


async def test_pending_requests_carry_requester_and_trip_label(dashboard, store, trip):
    store.add_participant(trip.id, GUEST_ID, ParticipantStatus.PENDING)
    store.add_participant(trip.id, OTHER_ID, ParticipantStatus.APPROVED)

    result = await dashboard.build(HOST_ID, now=NOW)

    assert len(result.pending_requests) == 1
    request = result.pending_requests[0]
    assert request.user_id == GUEST_ID
    assert request.requester.full_name == "Gita Guest"
    assert request.trip_label == "Pune"


async def test_request_for_unknown_trip_gets_placeholder_label(dashboard, store, trip, monkeypatch):
    orphan = store.add_participant(trip.id + 50, GUEST_ID, ParticipantStatus.PENDING)

    async def rows(trip_ids, status=None):
        return [orphan]

    monkeypatch.setattr(store, "list_participants_for_trips", rows)
    hosted = await attach_creators(store, [trip])
    requests = await dashboard.pending_requests(hosted)
    assert requests[0].trip_label == UNKNOWN_TRIP_LABEL


async def test_failed_section_degrades_to_empty(dashboard, store, trip, monkeypatch, caplog):
    joined = store.add_trip(OTHER_ID, NOW + timedelta(days=1))
    store.add_participant(joined.id, HOST_ID, ParticipantStatus.APPROVED)

    async def broken(user_id, status=None):
        raise ConnectionError("database unavailable")

    monkeypatch.setattr(store, "list_participations", broken)
    with caplog.at_level(logging.ERROR, logger="jointventure"):
        result = await dashboard.build(HOST_ID, now=NOW)

    assert result.joined == []
    assert [t.id for t in result.hosted] == [trip.id]
    assert result.next_trip.id == trip.id
    assert "joined trips" in caplog.text


def test_next_upcoming_of_nothing():
    assert next_upcoming([], NOW) is None


async def test_next_upcoming_skips_trip_starting_now(store):
    at_now = store.add_trip(HOST_ID, NOW)
    later = store.add_trip(HOST_ID, NOW + timedelta(hours=1))
    trips = await attach_creators(store, [at_now, later])
    assert next_upcoming(trips, NOW).id == later.id
    assert next_upcoming(trips[:1], NOW) is None


async def test_next_upcoming_handles_naive_now(store):
    later = store.add_trip(HOST_ID, NOW + timedelta(hours=1))
    trips = await attach_creators(store, [later])
    assert next_upcoming(trips, NOW.replace(tzinfo=None)).id == later.id

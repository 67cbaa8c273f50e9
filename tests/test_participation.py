import pytest
from fastapi import HTTPException

from jointventure.core.change_feed import INSERT, UPDATE
from jointventure.core.exceptions import (
    AlreadyRequested,
    ChatAccessDenied,
    StaleTransition,
    TransitionRejected,
    TripNotFound,
)
from jointventure.models.trips.trip_participant import ParticipantStatus, TripParticipant
from jointventure.schemas.trip.participant import ParticipationAction, ParticipationState
from jointventure.services.trips.participation import can_chat, can_manage, transition
from tests.conftest import GUEST_ID, HOST_ID, OTHER_ID


@pytest.mark.parametrize(
    "current, action, expected",
    [
        (ParticipationState.NONE, ParticipationAction.REQUEST, ParticipationState.PENDING),
        (ParticipationState.PENDING, ParticipationAction.APPROVE, ParticipationState.APPROVED),
        (ParticipationState.PENDING, ParticipationAction.REJECT, ParticipationState.REJECTED),
        (ParticipationState.APPROVED, ParticipationAction.REMOVE, ParticipationState.REJECTED),
    ],
)
def test_allowed_transitions(current, action, expected):
    is_host = action != ParticipationAction.REQUEST
    assert transition(current, is_host, action) == expected


@pytest.mark.parametrize(
    "current", [ParticipationState.PENDING, ParticipationState.APPROVED, ParticipationState.REJECTED]
)
def test_request_is_rejected_once_a_row_exists(current):
    with pytest.raises(AlreadyRequested) as exc:
        transition(current, False, ParticipationAction.REQUEST)
    assert exc.value.status_code == 409


def test_host_cannot_request_own_trip():
    with pytest.raises(TransitionRejected) as exc:
        transition(ParticipationState.OWNER, True, ParticipationAction.REQUEST)
    assert exc.value.status_code == 400


@pytest.mark.parametrize(
    "action", [ParticipationAction.APPROVE, ParticipationAction.REJECT, ParticipationAction.REMOVE]
)
def test_host_actions_need_the_creator(action):
    with pytest.raises(TransitionRejected) as exc:
        transition(ParticipationState.PENDING, False, action)
    assert exc.value.status_code == 403


@pytest.mark.parametrize(
    "current, action",
    [
        (ParticipationState.APPROVED, ParticipationAction.APPROVE),
        (ParticipationState.REJECTED, ParticipationAction.APPROVE),
        (ParticipationState.PENDING, ParticipationAction.REMOVE),
        (ParticipationState.NONE, ParticipationAction.REJECT),
    ],
)
def test_undefined_transitions_conflict(current, action):
    with pytest.raises(TransitionRejected) as exc:
        transition(current, True, action)
    assert exc.value.status_code == 409


def test_chat_and_manage_gates():
    assert can_chat(ParticipationState.OWNER)
    assert can_chat(ParticipationState.APPROVED)
    for state in (ParticipationState.NONE, ParticipationState.PENDING, ParticipationState.REJECTED):
        assert not can_chat(state)
    assert can_manage(ParticipationState.OWNER)
    assert not can_manage(ParticipationState.APPROVED)


async def test_resolve_state(participation, store, trip):
    assert await participation.resolve_state(trip, None) == ParticipationState.NONE
    assert await participation.resolve_state(trip, HOST_ID) == ParticipationState.OWNER
    assert await participation.resolve_state(trip, GUEST_ID) == ParticipationState.NONE

    store.add_participant(trip.id, GUEST_ID, ParticipantStatus.PENDING)
    assert await participation.resolve_state(trip, GUEST_ID) == ParticipationState.PENDING


async def test_request_creates_single_pending_row(participation, store, trip):
    participant = await participation.request_to_join(trip.id, GUEST_ID)
    assert ParticipantStatus(participant.status) == ParticipantStatus.PENDING

    with pytest.raises(AlreadyRequested):
        await participation.request_to_join(trip.id, GUEST_ID)

    rows = await store.list_participants(trip.id)
    assert [(r.user_id, r.status) for r in rows] == [(GUEST_ID, ParticipantStatus.PENDING)]


async def test_duplicate_insert_race_maps_to_already_requested(participation, store, trip, monkeypatch):
    store.add_participant(trip.id, GUEST_ID, ParticipantStatus.PENDING)

    async def not_seen_yet(trip_id, user_id):
        return None

    # both requests read "none" before either insert lands
    monkeypatch.setattr(store, "get_participant", not_seen_yet)
    with pytest.raises(AlreadyRequested):
        await participation.request_to_join(trip.id, GUEST_ID)


async def test_host_cannot_join_own_trip(participation, trip):
    with pytest.raises(TransitionRejected) as exc:
        await participation.request_to_join(trip.id, HOST_ID)
    assert exc.value.status_code == 400


async def test_request_on_missing_trip(participation):
    with pytest.raises(TripNotFound):
        await participation.request_to_join(999, GUEST_ID)


async def test_only_creator_can_approve(participation, store, trip):
    store.add_participant(trip.id, GUEST_ID, ParticipantStatus.PENDING)

    with pytest.raises(TransitionRejected) as exc:
        await participation.decide(trip.id, GUEST_ID, OTHER_ID, approve=True)
    assert exc.value.status_code == 403
    assert ParticipantStatus((await store.get_participant(trip.id, GUEST_ID)).status) == ParticipantStatus.PENDING

    approved = await participation.decide(trip.id, GUEST_ID, HOST_ID, approve=True)
    assert ParticipantStatus(approved.status) == ParticipantStatus.APPROVED


async def test_approved_member_cannot_remove_another(participation, store, trip):
    store.add_participant(trip.id, GUEST_ID, ParticipantStatus.APPROVED)
    store.add_participant(trip.id, OTHER_ID, ParticipantStatus.APPROVED)

    with pytest.raises(TransitionRejected) as exc:
        await participation.remove_participant(trip.id, OTHER_ID, GUEST_ID)
    assert exc.value.status_code == 403
    assert ParticipantStatus((await store.get_participant(trip.id, OTHER_ID)).status) == ParticipantStatus.APPROVED


async def test_reject_is_terminal(participation, store, trip):
    store.add_participant(trip.id, GUEST_ID, ParticipantStatus.PENDING)
    await participation.decide(trip.id, GUEST_ID, HOST_ID, approve=False)

    with pytest.raises(AlreadyRequested):
        await participation.request_to_join(trip.id, GUEST_ID)
    with pytest.raises(TransitionRejected):
        await participation.decide(trip.id, GUEST_ID, HOST_ID, approve=True)


async def test_conditional_write_detects_stale_read(participation, store, trip, monkeypatch):
    store.add_participant(trip.id, GUEST_ID, ParticipantStatus.PENDING)
    await participation.decide(trip.id, GUEST_ID, HOST_ID, approve=False)

    stale = TripParticipant(trip_id=trip.id, user_id=GUEST_ID, status=ParticipantStatus.PENDING)
    real_get = store.get_participant

    async def stale_read(trip_id, user_id):
        if user_id == GUEST_ID:
            return stale
        return await real_get(trip_id, user_id)

    # a second host click that read the row before the rejection landed
    monkeypatch.setattr(store, "get_participant", stale_read)
    with pytest.raises(StaleTransition) as exc:
        await participation.decide(trip.id, GUEST_ID, HOST_ID, approve=True)
    assert exc.value.status_code == 409
    assert ParticipantStatus((await real_get(trip.id, GUEST_ID)).status) == ParticipantStatus.REJECTED


async def test_remove_moves_member_to_rejected(participation, store, trip):
    store.add_participant(trip.id, GUEST_ID, ParticipantStatus.APPROVED)
    store.add_participant(trip.id, OTHER_ID, ParticipantStatus.APPROVED)

    removed = await participation.remove_participant(trip.id, GUEST_ID, HOST_ID)
    assert ParticipantStatus(removed.status) == ParticipantStatus.REJECTED

    members = await participation.list_members(trip.id, HOST_ID)
    assert [m.user_id for m in members] == [OTHER_ID]
    assert members[0].user.full_name == "Omar Other"


async def test_members_hidden_from_non_members(participation, store, trip):
    store.add_participant(trip.id, GUEST_ID, ParticipantStatus.PENDING)
    with pytest.raises(ChatAccessDenied):
        await participation.list_members(trip.id, GUEST_ID)
    with pytest.raises(HTTPException):
        await participation.list_members(trip.id, OTHER_ID)


async def test_changes_are_published(participation, feed, trip):
    seen = []
    feed.subscribe("trip_participants", {"trip_id": trip.id}, lambda row: seen.append(("insert", row)), event=INSERT)
    feed.subscribe("trip_participants", {"trip_id": trip.id}, lambda row: seen.append(("update", row)), event=UPDATE)

    await participation.request_to_join(trip.id, GUEST_ID)
    await participation.decide(trip.id, GUEST_ID, HOST_ID, approve=True)

    assert [(kind, row["status"]) for kind, row in seen] == [("insert", "Pending"), ("update", "Approved")]

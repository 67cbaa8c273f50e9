"""Trip participation workflow.

A viewer is in one of five states relative to a trip::

    none --request--> Pending --approve--> Approved --remove--> Rejected
                         \\----reject----> Rejected

The creator is ``owner`` and never holds a participant row. ``Rejected`` is
terminal: a rejected or removed user cannot ask again.

Every change goes through ``transition`` so the rules live in one place; the
service then performs a conditional write so two hosts (or two clicks) racing
on the same row cannot both win.
"""
import inspect
from typing import List, Optional, Tuple

from fastapi import status

from jointventure.core.change_feed import LocalChangeFeed, INSERT, UPDATE
from jointventure.core.exceptions import (
    AlreadyRequested,
    ChatAccessDenied,
    StaleTransition,
    TransitionRejected,
    TripNotFound,
)
from jointventure.core.logger import logger
from jointventure.models.trips.trip_model import Trip
from jointventure.models.trips.trip_participant import TripParticipant, ParticipantStatus
from jointventure.repositories.trip_store import TripStore, DuplicateParticipantError
from jointventure.schemas.trip.participant import (
    ParticipantOut,
    ParticipationAction,
    ParticipationState,
)
from jointventure.schemas.user.user import ProfileOut

# (current state, action) -> next state
_TRANSITIONS = {
    (ParticipationState.NONE, ParticipationAction.REQUEST): ParticipationState.PENDING,
    (ParticipationState.PENDING, ParticipationAction.APPROVE): ParticipationState.APPROVED,
    (ParticipationState.PENDING, ParticipationAction.REJECT): ParticipationState.REJECTED,
    (ParticipationState.APPROVED, ParticipationAction.REMOVE): ParticipationState.REJECTED,
}

_HOST_ACTIONS = {
    ParticipationAction.APPROVE,
    ParticipationAction.REJECT,
    ParticipationAction.REMOVE,
}


def transition(
    current: ParticipationState,
    actor_is_creator: bool,
    action: ParticipationAction,
) -> ParticipationState:
    """Return the state ``action`` leads to, or raise ``TransitionRejected``."""
    if action in _HOST_ACTIONS and not actor_is_creator:
        raise TransitionRejected("Only the trip host can manage participants", status.HTTP_403_FORBIDDEN)

    if action == ParticipationAction.REQUEST:
        if actor_is_creator or current == ParticipationState.OWNER:
            raise TransitionRejected("You are the host of this trip", status.HTTP_400_BAD_REQUEST)
        if current != ParticipationState.NONE:
            raise AlreadyRequested()

    next_state = _TRANSITIONS.get((current, action))
    if next_state is None:
        raise TransitionRejected(f"Cannot {action.value} a participant who is {current.value}")
    return next_state


def can_chat(state: ParticipationState) -> bool:
    return state in (ParticipationState.OWNER, ParticipationState.APPROVED)


def can_manage(state: ParticipationState) -> bool:
    return state == ParticipationState.OWNER


async def maybe_await(result):
    if inspect.isawaitable(result):
        return await result
    return result


class ParticipationService:
    def __init__(self, store: TripStore, feed: Optional[LocalChangeFeed] = None):
        self.store = store
        self.feed = feed

    async def _publish(self, event: str, participant: TripParticipant) -> None:
        if self.feed is not None:
            await self.feed.publish("trip_participants", participant.to_dict(), event=event)

    async def get_trip(self, trip_id: int) -> Trip:
        trip = await self.store.get_trip(trip_id)
        if trip is None:
            logger.warning(f"Trip not found: ID {trip_id}")
            raise TripNotFound()
        return trip

    async def resolve_state(self, trip, user_id: Optional[int]) -> ParticipationState:
        """Viewer's state for ``trip``; anything with ``id`` and ``creator_id`` will do."""
        if user_id is None:
            return ParticipationState.NONE
        if trip.creator_id == user_id:
            return ParticipationState.OWNER

        participant = await self.store.get_participant(trip.id, user_id)
        if participant is None:
            return ParticipationState.NONE
        return ParticipationState(ParticipantStatus(participant.status).value)

    async def state_for(self, trip_id: int, user_id: int) -> Tuple[Trip, ParticipationState]:
        trip = await self.get_trip(trip_id)
        return trip, await self.resolve_state(trip, user_id)

    async def request_to_join(self, trip_id: int, user_id: int) -> TripParticipant:
        trip, state = await self.state_for(trip_id, user_id)
        transition(state, trip.creator_id == user_id, ParticipationAction.REQUEST)

        try:
            participant = await self.store.insert_participant(trip_id, user_id, ParticipantStatus.PENDING)
        except DuplicateParticipantError:
            # lost a race with an identical request from the same user
            logger.warning(f"Duplicate join request for trip {trip_id} by user {user_id}")
            raise AlreadyRequested()

        logger.info(f"User {user_id} requested to join trip {trip_id}")
        await self._publish(INSERT, participant)
        return participant

    async def _apply_host_action(
        self,
        trip_id: int,
        user_id: int,
        actor_id: int,
        action: ParticipationAction,
    ) -> TripParticipant:
        trip, state = await self.state_for(trip_id, user_id)
        actor_state = await self.resolve_state(trip, actor_id)
        next_state = transition(state, can_manage(actor_state), action)

        expected = ParticipantStatus(state.value)
        changed = await self.store.update_participant_status(
            trip_id, user_id, ParticipantStatus(next_state.value), expected=expected
        )
        if not changed:
            logger.warning(f"Stale {action.value} on trip {trip_id} for user {user_id}: no longer {expected.value}")
            raise StaleTransition()

        participant = await self.store.get_participant(trip_id, user_id)
        logger.info(f"Host {actor_id} moved user {user_id} on trip {trip_id} to {next_state.value}")
        await self._publish(UPDATE, participant)
        return participant

    async def decide(self, trip_id: int, user_id: int, actor_id: int, approve: bool) -> TripParticipant:
        action = ParticipationAction.APPROVE if approve else ParticipationAction.REJECT
        return await self._apply_host_action(trip_id, user_id, actor_id, action)

    async def remove_participant(self, trip_id: int, user_id: int, actor_id: int) -> TripParticipant:
        return await self._apply_host_action(trip_id, user_id, actor_id, ParticipationAction.REMOVE)

    async def list_members(self, trip_id: int, viewer_id: int) -> List[ParticipantOut]:
        """Approved participants of a trip, host excluded, with their profiles."""
        trip, state = await self.state_for(trip_id, viewer_id)
        if not can_chat(state):
            raise ChatAccessDenied("Only approved members can see who is on this trip")

        participants = await self.store.list_participants(trip.id, ParticipantStatus.APPROVED)
        profiles = await self.store.get_profiles(p.user_id for p in participants)

        members = []
        for participant in participants:
            profile = profiles.get(participant.user_id)
            members.append(
                ParticipantOut.model_validate(participant).model_copy(
                    update={"user": ProfileOut.model_validate(profile) if profile else None}
                )
            )
        return members

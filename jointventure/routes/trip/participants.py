from typing import List

from fastapi import APIRouter, Depends, status

from jointventure.dependencies.auth import get_current_user
from jointventure.dependencies.services import get_participation_service
from jointventure.models.user.user import User
from jointventure.schemas.trip.participant import JoinStatusOut, ParticipantOut
from jointventure.services.trips.participation import ParticipationService

router = APIRouter(prefix="/trips", tags=["Trip Participants"])


@router.post("/{trip_id}/join", response_model=ParticipantOut, status_code=status.HTTP_201_CREATED)
async def request_to_join(
    trip_id: int,
    current_user: User = Depends(get_current_user),
    participation: ParticipationService = Depends(get_participation_service)
):
    return await participation.request_to_join(trip_id, current_user.id)


@router.get("/{trip_id}/join-status", response_model=JoinStatusOut)
async def get_join_status(
    trip_id: int,
    current_user: User = Depends(get_current_user),
    participation: ParticipationService = Depends(get_participation_service)
):
    _, state = await participation.state_for(trip_id, current_user.id)
    return JoinStatusOut(trip_id=trip_id, status=state)


@router.get("/{trip_id}/members", response_model=List[ParticipantOut])
async def list_members(
    trip_id: int,
    current_user: User = Depends(get_current_user),
    participation: ParticipationService = Depends(get_participation_service)
):
    return await participation.list_members(trip_id, current_user.id)


@router.post("/{trip_id}/participants/{user_id}/approve", response_model=ParticipantOut)
async def approve_request(
    trip_id: int,
    user_id: int,
    current_user: User = Depends(get_current_user),
    participation: ParticipationService = Depends(get_participation_service)
):
    return await participation.decide(trip_id, user_id, current_user.id, approve=True)


@router.post("/{trip_id}/participants/{user_id}/reject", response_model=ParticipantOut)
async def reject_request(
    trip_id: int,
    user_id: int,
    current_user: User = Depends(get_current_user),
    participation: ParticipationService = Depends(get_participation_service)
):
    return await participation.decide(trip_id, user_id, current_user.id, approve=False)


@router.delete("/{trip_id}/participants/{user_id}", response_model=ParticipantOut)
async def remove_participant(
    trip_id: int,
    user_id: int,
    current_user: User = Depends(get_current_user),
    participation: ParticipationService = Depends(get_participation_service)
):
    return await participation.remove_participant(trip_id, user_id, current_user.id)

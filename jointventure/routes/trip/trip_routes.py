from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from jointventure.dependencies.auth import get_current_user
from jointventure.dependencies.services import get_trip_service
from jointventure.models.trips.trip_model import TravelStyleType
from jointventure.models.user.user import User
from jointventure.schemas.trip.trip_schema import TripCreate, TripDetailOut, TripOut
from jointventure.services.trips.trip_service import TripService

router = APIRouter(prefix="/trips", tags=["Trips"])


@router.post("", response_model=TripDetailOut, status_code=status.HTTP_201_CREATED)
async def create_trip_route(
    trip: TripCreate,
    current_user: User = Depends(get_current_user),
    trip_service: TripService = Depends(get_trip_service)
):
    return await trip_service.create_trip(trip, current_user.id)


@router.get("/discover", response_model=List[TripOut])
async def discover_trips(
    search: Optional[str] = Query(None, description="Matches start or end location"),
    travel_style: Optional[TravelStyleType] = None,
    start_date: Optional[date] = Query(None, description="Only trips starting on or after this day"),
    current_user: User = Depends(get_current_user),
    trip_service: TripService = Depends(get_trip_service)
):
    style = travel_style.value if travel_style else None
    return await trip_service.discover(search, style, start_date)


@router.get("/{trip_id}", response_model=TripDetailOut)
async def get_trip(
    trip_id: int,
    current_user: User = Depends(get_current_user),
    trip_service: TripService = Depends(get_trip_service)
):
    return await trip_service.get_trip_detail(trip_id, current_user.id)


@router.delete("/{trip_id}")
async def delete_trip_route(
    trip_id: int,
    current_user: User = Depends(get_current_user),
    trip_service: TripService = Depends(get_trip_service)
):
    return await trip_service.delete_trip(trip_id, current_user.id)

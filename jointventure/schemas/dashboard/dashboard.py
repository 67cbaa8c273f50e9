from pydantic import BaseModel
from typing import List, Optional
from jointventure.schemas.trip.trip_schema import TripOut
from jointventure.schemas.trip.participant import PendingRequestOut


class DashboardOut(BaseModel):
    hosted: List[TripOut] = []
    joined: List[TripOut] = []
    next_trip: Optional[TripOut] = None
    pending_requests: List[PendingRequestOut] = []

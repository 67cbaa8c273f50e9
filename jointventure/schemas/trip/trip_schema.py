from pydantic import BaseModel, Field, field_validator, model_validator
from typing import List, Optional
from datetime import datetime, timezone
from jointventure.models.trips.trip_model import (
    VehicleType, FlexibilityType, TravelStyleType, PurposeType, VisibilityType
)
from jointventure.schemas.user.user import ProfileOut
from jointventure.schemas.trip.participant import ParticipationState


class TripBase(BaseModel):
    start_location: str = Field(min_length=1)
    end_location: str = Field(min_length=1)
    start_time: datetime
    end_time: datetime
    vehicle: VehicleType
    flexibility: FlexibilityType
    travel_style: TravelStyleType
    purpose: PurposeType
    visibility: VisibilityType = VisibilityType.PUBLIC
    max_people: int = Field(default=4, ge=2)
    safety_rules: Optional[str] = None


class TripCreate(TripBase):
    stops: List[str] = []

    @field_validator("start_time", "end_time")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @model_validator(mode="after")
    def check_trip(self):
        if not self.start_location.strip() or not self.end_location.strip():
            raise ValueError("Please fill in all required fields (Locations and Dates).")
        if self.end_time < self.start_time:
            raise ValueError("end_time must not be before start_time")
        return self


class TripStopOut(BaseModel):
    id: Optional[int] = None
    trip_id: int
    stop_name: str
    stop_order: int

    model_config = {"from_attributes": True}


class TripOut(TripBase):
    id: int
    creator_id: int
    created_at: Optional[datetime] = None
    creator: Optional[ProfileOut] = None

    model_config = {"from_attributes": True}


class TripDetailOut(TripOut):
    stops: List[TripStopOut] = []
    join_status: Optional[ParticipationState] = None

from pydantic import BaseModel
from datetime import datetime
from enum import Enum
from typing import Optional
from jointventure.models.trips.trip_participant import ParticipantStatus
from jointventure.schemas.user.user import ProfileOut


# What a given viewer is to a trip. OWNER never has a participant row.
class ParticipationState(str, Enum):
    NONE = "none"
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    OWNER = "owner"


class ParticipationAction(str, Enum):
    REQUEST = "request"
    APPROVE = "approve"
    REJECT = "reject"
    REMOVE = "remove"


class ParticipantOut(BaseModel):
    trip_id: int
    user_id: int
    status: ParticipantStatus
    created_at: Optional[datetime] = None
    user: Optional[ProfileOut] = None

    model_config = {"from_attributes": True}


class JoinStatusOut(BaseModel):
    trip_id: int
    status: ParticipationState


class PendingRequestOut(BaseModel):
    trip_id: int
    user_id: int
    status: ParticipantStatus
    created_at: Optional[datetime] = None
    requester: Optional[ProfileOut] = None
    trip_label: str

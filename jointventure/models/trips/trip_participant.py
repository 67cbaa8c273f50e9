from sqlalchemy import Column, Integer, ForeignKey, DateTime, func
from sqlalchemy.orm import relationship
import sqlalchemy as sa
import enum
from jointventure.core.database import Base


class ParticipantStatus(str, enum.Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class TripParticipant(Base):
    __tablename__ = "trip_participants"

    # composite key: one row per (trip, user)
    trip_id = Column(Integer, ForeignKey("trips.id", ondelete="CASCADE"), primary_key=True)
    user_id = Column(Integer, ForeignKey("profiles.id", ondelete="CASCADE"), primary_key=True, index=True)

    participant_status_enum = sa.Enum(
        ParticipantStatus,
        name="participant_status",
        values_callable=lambda obj: [e.value for e in obj]
    )
    status = Column(participant_status_enum, nullable=False, default=ParticipantStatus.PENDING)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    trip = relationship("Trip", back_populates="participants")

    def to_dict(self):
        return {
            "trip_id": self.trip_id,
            "user_id": self.user_id,
            "status": ParticipantStatus(self.status).value,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

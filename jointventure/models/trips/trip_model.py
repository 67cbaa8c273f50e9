from sqlalchemy import Column, Integer, String, Text, ForeignKey, DateTime, func
from sqlalchemy.orm import relationship
import sqlalchemy as sa
import enum
from jointventure.core.database import Base


class VehicleType(str, enum.Enum):
    BUS = "Bus"
    CAR = "Car"
    BIKE = "Bike"
    TRAIN = "Train"
    AEROPLANE = "Aeroplane"


class FlexibilityType(str, enum.Enum):
    STRICT = "Strict"
    FLEXIBLE = "Flexible"


class TravelStyleType(str, enum.Enum):
    BUDGET = "Budget"
    LUXURY = "Luxury"
    BACKPACKING = "Backpacking"


class PurposeType(str, enum.Enum):
    EXPLORE = "Explore"
    WORK = "Work"
    ADVENTURE = "Adventure"


class VisibilityType(str, enum.Enum):
    PUBLIC = "Public"
    LIMITED = "Limited"


def _pg_enum(enum_cls, name):
    # store the capitalised values ("Bus"), not the member names ("BUS")
    return sa.Enum(enum_cls, name=name, values_callable=lambda obj: [e.value for e in obj])


class Trip(Base):
    __tablename__ = "trips"

    id = Column(Integer, primary_key=True, index=True)
    creator_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)
    start_location = Column(String, nullable=False)
    end_location = Column(String, nullable=False)
    start_time = Column(DateTime(timezone=True), nullable=False, index=True)
    end_time = Column(DateTime(timezone=True), nullable=False)
    vehicle = Column(_pg_enum(VehicleType, "vehicle_type"), nullable=False)
    flexibility = Column(_pg_enum(FlexibilityType, "flexibility_type"), nullable=False)
    travel_style = Column(_pg_enum(TravelStyleType, "travel_style_type"), nullable=False)
    purpose = Column(_pg_enum(PurposeType, "purpose_type"), nullable=False)
    visibility = Column(_pg_enum(VisibilityType, "visibility_type"), nullable=False, default=VisibilityType.PUBLIC)
    max_people = Column(Integer, nullable=False, default=4)
    safety_rules = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    stops = relationship("TripStop", back_populates="trip", cascade="all, delete", passive_deletes=True)
    participants = relationship("TripParticipant", back_populates="trip", cascade="all, delete", passive_deletes=True)
    messages = relationship("TripMessage", back_populates="trip", cascade="all, delete", passive_deletes=True)

    def to_dict(self):
        return {
            "id": self.id,
            "creator_id": self.creator_id,
            "start_location": self.start_location,
            "end_location": self.end_location,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "vehicle": VehicleType(self.vehicle).value,
            "flexibility": FlexibilityType(self.flexibility).value,
            "travel_style": TravelStyleType(self.travel_style).value,
            "purpose": PurposeType(self.purpose).value,
            "visibility": VisibilityType(self.visibility).value,
            "max_people": self.max_people,
            "safety_rules": self.safety_rules,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class TripStop(Base):
    __tablename__ = "trip_stops"

    id = Column(Integer, primary_key=True, index=True)
    trip_id = Column(Integer, ForeignKey("trips.id", ondelete="CASCADE"), nullable=False, index=True)
    stop_name = Column(String, nullable=False)
    # display sequence only, not unique
    stop_order = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    trip = relationship("Trip", back_populates="stops")

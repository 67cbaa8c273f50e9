from .user.user import User, Profile
from .trips.trip_model import Trip, TripStop
from .trips.trip_participant import TripParticipant, ParticipantStatus
from .trips.trip_message import TripMessage

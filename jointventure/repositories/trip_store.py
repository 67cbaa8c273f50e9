"""Data-access contract for profiles, trips, stops, participants and messages.

Services take a ``TripStore`` in their constructor. Production code wires in
``SqlAlchemyTripStore``; tests use an in-memory implementation of the same
interface.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import AsyncContextManager, Callable, Dict, Iterable, List, Optional

from jointventure.models.user.user import Profile
from jointventure.models.trips.trip_model import Trip, TripStop
from jointventure.models.trips.trip_participant import TripParticipant, ParticipantStatus
from jointventure.models.trips.trip_message import TripMessage


class DuplicateParticipantError(Exception):
    """A participant row already exists for this (trip_id, user_id)."""

    def __init__(self, trip_id: int, user_id: int):
        super().__init__(f"Participant ({trip_id}, {user_id}) already exists")
        self.trip_id = trip_id
        self.user_id = user_id


class TripStore(ABC):

    # profiles
    @abstractmethod
    async def get_profile(self, user_id: int) -> Optional[Profile]:
        ...

    @abstractmethod
    async def get_profiles(self, user_ids: Iterable[int]) -> Dict[int, Profile]:
        ...

    @abstractmethod
    async def update_profile(self, user_id: int, patch: dict) -> Optional[Profile]:
        ...

    # trips
    @abstractmethod
    async def get_trip(self, trip_id: int) -> Optional[Trip]:
        ...

    @abstractmethod
    async def list_trips_by_creator(self, creator_id: int) -> List[Trip]:
        """Trips hosted by ``creator_id``, earliest start first."""

    @abstractmethod
    async def list_trips_by_ids(self, trip_ids: Iterable[int]) -> List[Trip]:
        """Trips with the given ids, earliest start first. Unknown ids are skipped."""

    @abstractmethod
    async def list_public_trips(
        self,
        search: Optional[str] = None,
        travel_style: Optional[str] = None,
        starts_after: Optional[datetime] = None,
    ) -> List[Trip]:
        ...

    @abstractmethod
    async def create_trip(self, trip: Trip, stops: List[TripStop]) -> Trip:
        """Persist a trip and its stops together; ``trip_id`` is set on each stop."""

    @abstractmethod
    async def delete_trip(self, trip_id: int) -> bool:
        ...

    @abstractmethod
    async def list_stops(self, trip_id: int) -> List[TripStop]:
        ...

    # participants
    @abstractmethod
    async def get_participant(self, trip_id: int, user_id: int) -> Optional[TripParticipant]:
        ...

    @abstractmethod
    async def insert_participant(
        self, trip_id: int, user_id: int, status: ParticipantStatus = ParticipantStatus.PENDING
    ) -> TripParticipant:
        """Raises ``DuplicateParticipantError`` when the pair already exists."""

    @abstractmethod
    async def update_participant_status(
        self,
        trip_id: int,
        user_id: int,
        status: ParticipantStatus,
        expected: Optional[ParticipantStatus] = None,
    ) -> bool:
        """Set the status. With ``expected``, only update a row currently in that
        status. Returns whether a row was changed."""

    @abstractmethod
    async def list_participants(
        self, trip_id: int, status: Optional[ParticipantStatus] = None
    ) -> List[TripParticipant]:
        ...

    @abstractmethod
    async def list_participations(
        self, user_id: int, status: Optional[ParticipantStatus] = None
    ) -> List[TripParticipant]:
        ...

    @abstractmethod
    async def list_participants_for_trips(
        self, trip_ids: Iterable[int], status: Optional[ParticipantStatus] = None
    ) -> List[TripParticipant]:
        ...

    # messages
    @abstractmethod
    async def insert_message(self, trip_id: int, user_id: int, content: str) -> TripMessage:
        ...

    @abstractmethod
    async def list_messages(self, trip_id: int) -> List[TripMessage]:
        """All messages of a trip in insertion order."""


# Opens a store on its own short-lived session: ``async with factory() as store``.
StoreFactory = Callable[[], AsyncContextManager[TripStore]]

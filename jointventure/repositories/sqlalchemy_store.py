from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Dict, Iterable, List, Optional

from sqlalchemy import delete, or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from jointventure.core.database import SessionLocal
from jointventure.models.user.user import Profile
from jointventure.models.trips.trip_model import Trip, TripStop, VisibilityType
from jointventure.models.trips.trip_participant import TripParticipant, ParticipantStatus
from jointventure.models.trips.trip_message import TripMessage
from jointventure.repositories.trip_store import TripStore, DuplicateParticipantError


class SqlAlchemyTripStore(TripStore):
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_profile(self, user_id: int) -> Optional[Profile]:
        return await self.db.get(Profile, user_id)

    async def get_profiles(self, user_ids: Iterable[int]) -> Dict[int, Profile]:
        ids = set(user_ids)
        if not ids:
            return {}
        result = await self.db.execute(select(Profile).where(Profile.id.in_(ids)))
        return {profile.id: profile for profile in result.scalars().all()}

    async def update_profile(self, user_id: int, patch: dict) -> Optional[Profile]:
        profile = await self.db.get(Profile, user_id)
        if profile is None:
            return None
        for key, value in patch.items():
            setattr(profile, key, value)
        await self.db.commit()
        await self.db.refresh(profile)
        return profile

    async def get_trip(self, trip_id: int) -> Optional[Trip]:
        return await self.db.get(Trip, trip_id)

    async def list_trips_by_creator(self, creator_id: int) -> List[Trip]:
        result = await self.db.execute(
            select(Trip)
            .where(Trip.creator_id == creator_id)
            .order_by(Trip.start_time.asc(), Trip.id.asc())
        )
        return list(result.scalars().all())

    async def list_trips_by_ids(self, trip_ids: Iterable[int]) -> List[Trip]:
        ids = set(trip_ids)
        if not ids:
            return []
        result = await self.db.execute(
            select(Trip)
            .where(Trip.id.in_(ids))
            .order_by(Trip.start_time.asc(), Trip.id.asc())
        )
        return list(result.scalars().all())

    async def list_public_trips(
        self,
        search: Optional[str] = None,
        travel_style: Optional[str] = None,
        starts_after: Optional[datetime] = None,
    ) -> List[Trip]:
        query = select(Trip).where(Trip.visibility == VisibilityType.PUBLIC)
        if search:
            pattern = f"%{search}%"
            query = query.where(or_(Trip.start_location.ilike(pattern), Trip.end_location.ilike(pattern)))
        if travel_style:
            query = query.where(Trip.travel_style == travel_style)
        if starts_after:
            query = query.where(Trip.start_time >= starts_after)
        query = query.order_by(Trip.start_time.asc(), Trip.id.asc())

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def create_trip(self, trip: Trip, stops: List[TripStop]) -> Trip:
        self.db.add(trip)
        await self.db.flush()

        for stop in stops:
            stop.trip_id = trip.id
            self.db.add(stop)

        await self.db.commit()
        await self.db.refresh(trip)
        return trip

    async def delete_trip(self, trip_id: int) -> bool:
        result = await self.db.execute(delete(Trip).where(Trip.id == trip_id))
        await self.db.commit()
        return result.rowcount > 0

    async def list_stops(self, trip_id: int) -> List[TripStop]:
        result = await self.db.execute(
            select(TripStop)
            .where(TripStop.trip_id == trip_id)
            .order_by(TripStop.stop_order.asc(), TripStop.id.asc())
        )
        return list(result.scalars().all())

    async def get_participant(self, trip_id: int, user_id: int) -> Optional[TripParticipant]:
        return await self.db.get(TripParticipant, (trip_id, user_id))

    async def insert_participant(
        self, trip_id: int, user_id: int, status: ParticipantStatus = ParticipantStatus.PENDING
    ) -> TripParticipant:
        participant = TripParticipant(trip_id=trip_id, user_id=user_id, status=status)
        self.db.add(participant)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise DuplicateParticipantError(trip_id, user_id) from None
        await self.db.refresh(participant)
        return participant

    async def update_participant_status(
        self,
        trip_id: int,
        user_id: int,
        status: ParticipantStatus,
        expected: Optional[ParticipantStatus] = None,
    ) -> bool:
        stmt = update(TripParticipant).where(
            TripParticipant.trip_id == trip_id,
            TripParticipant.user_id == user_id,
        )
        if expected is not None:
            stmt = stmt.where(TripParticipant.status == expected)
        result = await self.db.execute(stmt.values(status=status))
        await self.db.commit()
        return result.rowcount > 0

    async def list_participants(
        self, trip_id: int, status: Optional[ParticipantStatus] = None
    ) -> List[TripParticipant]:
        query = select(TripParticipant).where(TripParticipant.trip_id == trip_id)
        if status is not None:
            query = query.where(TripParticipant.status == status)
        result = await self.db.execute(query.order_by(TripParticipant.created_at.asc()))
        return list(result.scalars().all())

    async def list_participations(
        self, user_id: int, status: Optional[ParticipantStatus] = None
    ) -> List[TripParticipant]:
        query = select(TripParticipant).where(TripParticipant.user_id == user_id)
        if status is not None:
            query = query.where(TripParticipant.status == status)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_participants_for_trips(
        self, trip_ids: Iterable[int], status: Optional[ParticipantStatus] = None
    ) -> List[TripParticipant]:
        ids = set(trip_ids)
        if not ids:
            return []
        query = select(TripParticipant).where(TripParticipant.trip_id.in_(ids))
        if status is not None:
            query = query.where(TripParticipant.status == status)
        result = await self.db.execute(query.order_by(TripParticipant.created_at.asc()))
        return list(result.scalars().all())

    async def insert_message(self, trip_id: int, user_id: int, content: str) -> TripMessage:
        message = TripMessage(trip_id=trip_id, user_id=user_id, content=content)
        self.db.add(message)
        await self.db.commit()
        await self.db.refresh(message)
        return message

    async def list_messages(self, trip_id: int) -> List[TripMessage]:
        result = await self.db.execute(
            select(TripMessage)
            .where(TripMessage.trip_id == trip_id)
            .order_by(TripMessage.created_at.asc(), TripMessage.id.asc())
        )
        return list(result.scalars().all())


@asynccontextmanager
async def session_store() -> AsyncIterator[SqlAlchemyTripStore]:
    """A store on a fresh session that is closed (and its connection returned) on exit."""
    async with SessionLocal() as db:
        yield SqlAlchemyTripStore(db)

from datetime import timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from jointventure.core.database import Base
from jointventure.models.trips.trip_message import TripMessage
from jointventure.models.trips.trip_model import (
    FlexibilityType,
    PurposeType,
    TravelStyleType,
    Trip,
    TripStop,
    VehicleType,
)
from jointventure.models.trips.trip_participant import ParticipantStatus, TripParticipant
from jointventure.repositories.sqlalchemy_store import SqlAlchemyTripStore
from jointventure.repositories.trip_store import DuplicateParticipantError
from tests.conftest import GUEST_ID, HOST_ID, NOW

# profiles carries a PostgreSQL ARRAY column, so only the trip tables are built here
TABLES = [Trip.__table__, TripStop.__table__, TripParticipant.__table__, TripMessage.__table__]


@pytest.fixture
async def sessions(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/store.db")
    async with engine.begin() as conn:
        await conn.run_sync(lambda sync_conn: Base.metadata.create_all(sync_conn, tables=TABLES))
    yield async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)
    await engine.dispose()


async def make_trip(store):
    trip = Trip(
        creator_id=HOST_ID,
        start_location="Pune",
        end_location="Goa",
        start_time=NOW + timedelta(days=3),
        end_time=NOW + timedelta(days=5),
        vehicle=VehicleType.CAR,
        flexibility=FlexibilityType.FLEXIBLE,
        travel_style=TravelStyleType.BUDGET,
        purpose=PurposeType.EXPLORE,
    )
    stops = [TripStop(stop_name="Satara", stop_order=1), TripStop(stop_name="Kolhapur", stop_order=2)]
    return await store.create_trip(trip, stops)


async def test_create_trip_keeps_stop_order(sessions):
    async with sessions() as db:
        store = SqlAlchemyTripStore(db)
        trip = await make_trip(store)
        assert [s.stop_name for s in await store.list_stops(trip.id)] == ["Satara", "Kolhapur"]
        assert [t.id for t in await store.list_public_trips(search="goa")] == [trip.id]


async def test_second_join_row_is_a_duplicate(sessions):
    async with sessions() as db:
        trip = await make_trip(SqlAlchemyTripStore(db))

    async with sessions() as first, sessions() as second:
        await SqlAlchemyTripStore(first).insert_participant(trip.id, GUEST_ID)
        with pytest.raises(DuplicateParticipantError):
            await SqlAlchemyTripStore(second).insert_participant(trip.id, GUEST_ID)

    async with sessions() as db:
        rows = await SqlAlchemyTripStore(db).list_participants(trip.id)
    assert [(p.user_id, ParticipantStatus(p.status)) for p in rows] == [(GUEST_ID, ParticipantStatus.PENDING)]


async def test_conditional_update_applies_once(sessions):
    async with sessions() as db:
        store = SqlAlchemyTripStore(db)
        trip = await make_trip(store)
        await store.insert_participant(trip.id, GUEST_ID)

    async with sessions() as approver, sessions() as rejecter:
        approved = await SqlAlchemyTripStore(approver).update_participant_status(
            trip.id, GUEST_ID, ParticipantStatus.APPROVED, expected=ParticipantStatus.PENDING
        )
        rejected = await SqlAlchemyTripStore(rejecter).update_participant_status(
            trip.id, GUEST_ID, ParticipantStatus.REJECTED, expected=ParticipantStatus.PENDING
        )
    assert approved is True
    assert rejected is False

    async with sessions() as db:
        participant = await SqlAlchemyTripStore(db).get_participant(trip.id, GUEST_ID)
    assert ParticipantStatus(participant.status) == ParticipantStatus.APPROVED


async def test_messages_come_back_in_insertion_order(sessions):
    async with sessions() as db:
        store = SqlAlchemyTripStore(db)
        trip = await make_trip(store)
        for content in ("one", "two", "three"):
            await store.insert_message(trip.id, HOST_ID, content)

        assert [m.content for m in await store.list_messages(trip.id)] == ["one", "two", "three"]

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession
from jointventure.core.cache import RedisCache
from jointventure.core.change_feed import LocalChangeFeed
from jointventure.core.database import get_db
from jointventure.core.redis_lifecyle import get_cache, get_change_feed
from jointventure.repositories.trip_store import StoreFactory, TripStore
from jointventure.repositories.sqlalchemy_store import SqlAlchemyTripStore, session_store
from jointventure.services.auth.profile_service import ProfileService
from jointventure.services.dashboard.dashboard_service import DashboardService
from jointventure.services.trips.chat_service import ChatService
from jointventure.services.trips.participation import ParticipationService
from jointventure.services.trips.trip_service import TripService


async def get_trip_store(db: AsyncSession = Depends(get_db)) -> TripStore:
    return SqlAlchemyTripStore(db)


async def get_participation_service(
    store: TripStore = Depends(get_trip_store),
    feed: LocalChangeFeed = Depends(get_change_feed),
) -> ParticipationService:
    return ParticipationService(store, feed)


async def get_chat_service(
    store: TripStore = Depends(get_trip_store),
    feed: LocalChangeFeed = Depends(get_change_feed),
) -> ChatService:
    return ChatService(store, feed)


async def get_trip_service(
    store: TripStore = Depends(get_trip_store),
    cache: RedisCache = Depends(get_cache),
    feed: LocalChangeFeed = Depends(get_change_feed),
) -> TripService:
    return TripService(store, cache, feed)


async def get_dashboard_service(store: TripStore = Depends(get_trip_store)) -> DashboardService:
    return DashboardService(store)


async def get_profile_service(store: TripStore = Depends(get_trip_store)) -> ProfileService:
    return ProfileService(store)


def get_store_factory() -> StoreFactory:
    # long-lived sockets open a short session per read instead of holding one
    return session_store

from datetime import datetime, time, timezone, date
from typing import Iterable, List, Optional

from jointventure.core.cache import RedisCache
from jointventure.core.change_feed import LocalChangeFeed, DELETE
from jointventure.core.config import settings
from jointventure.core.exceptions import NotTripHost, ProfileNotFound
from jointventure.core.logger import logger
from jointventure.models.trips.trip_model import Trip, TripStop
from jointventure.repositories.trip_store import TripStore
from jointventure.schemas.trip.participant import ParticipationState
from jointventure.schemas.trip.trip_schema import TripCreate, TripDetailOut, TripOut, TripStopOut
from jointventure.schemas.user.user import ProfileOut
from jointventure.services.trips.participation import ParticipationService


async def attach_creators(store: TripStore, trips: Iterable[Trip]) -> List[TripOut]:
    """Serialize trips with their host's profile embedded, keeping order."""
    trips = list(trips)
    profiles = await store.get_profiles({trip.creator_id for trip in trips})
    result = []
    for trip in trips:
        profile = profiles.get(trip.creator_id)
        result.append(
            TripOut.model_validate(trip).model_copy(
                update={"creator": ProfileOut.model_validate(profile) if profile else None}
            )
        )
    return result


class TripService:
    def __init__(self, store: TripStore, cache: RedisCache, feed: Optional[LocalChangeFeed] = None):
        self.store = store
        self.cache = cache
        self.feed = feed
        self.participation = ParticipationService(store, feed)

    async def _invalidate_trip_caches(self, trip_id: int):
        """Invalidate all caches related to a trip"""
        await self.cache.delete_pattern(RedisCache.build_key("trips", "id", trip_id))

    async def create_trip(self, trip_data: TripCreate, user_id: int) -> TripDetailOut:
        creator = await self.store.get_profile(user_id)
        if creator is None:
            raise ProfileNotFound("Finish setting up your profile before hosting a trip")

        new_trip = Trip(**trip_data.model_dump(exclude={"stops"}), creator_id=user_id)
        # blank stops are dropped; the rest keep their submitted order
        names = [name.strip() for name in trip_data.stops if name and name.strip()]
        stops = [TripStop(stop_name=name, stop_order=index + 1) for index, name in enumerate(names)]

        trip = await self.store.create_trip(new_trip, stops)
        logger.info(f"Trip {trip.id} created by user {user_id} with {len(stops)} stops")

        detail = await self._build_detail(trip)
        return detail.model_copy(update={"join_status": ParticipationState.OWNER})

    async def _build_detail(self, trip: Trip) -> TripDetailOut:
        stops = await self.store.list_stops(trip.id)
        creator = await self.store.get_profile(trip.creator_id)
        base = TripOut.model_validate(trip).model_dump()
        base["creator"] = ProfileOut.model_validate(creator) if creator else None
        return TripDetailOut(
            **base,
            stops=[TripStopOut.model_validate(stop) for stop in stops],
        )

    async def get_trip_detail(self, trip_id: int, viewer_id: Optional[int]) -> TripDetailOut:
        cache_key = RedisCache.build_key("trips", "id", trip_id)
        cached = await self.cache.get(cache_key)

        if cached:
            detail = TripDetailOut.model_validate(cached)
            logger.info(f"Trip ID {trip_id} retrieved from cache")
        else:
            trip = await self.participation.get_trip(trip_id)
            detail = await self._build_detail(trip)
            await self.cache.set(
                cache_key,
                detail.model_dump(mode="json", exclude={"join_status"}),
                expire=settings.TRIP_CACHE_TTL,
            )
            logger.info(f"Trip ID {trip_id} retrieved from database")

        # the viewer's own state is never cached
        join_status = await self.participation.resolve_state(detail, viewer_id)
        return detail.model_copy(update={"join_status": join_status})

    async def delete_trip(self, trip_id: int, user_id: int) -> dict:
        trip = await self.participation.get_trip(trip_id)
        if trip.creator_id != user_id:
            logger.warning(f"Unauthorized delete attempt: trip {trip_id}, user {user_id}")
            raise NotTripHost("Only the trip host can delete this trip")

        await self.store.delete_trip(trip_id)
        await self._invalidate_trip_caches(trip_id)
        if self.feed is not None:
            await self.feed.publish("trips", {"id": trip_id, "creator_id": user_id}, event=DELETE)

        logger.info(f"Trip ID {trip_id} deleted by user {user_id}")
        return {"msg": "Trip deleted successfully"}

    async def discover(
        self,
        search: Optional[str] = None,
        travel_style: Optional[str] = None,
        start_date: Optional[date] = None,
    ) -> List[TripOut]:
        starts_after = None
        if start_date is not None:
            starts_after = datetime.combine(start_date, time.min, tzinfo=timezone.utc)

        trips = await self.store.list_public_trips(
            search=search.strip() if search and search.strip() else None,
            travel_style=travel_style,
            starts_after=starts_after,
        )
        return await attach_creators(self.store, trips)

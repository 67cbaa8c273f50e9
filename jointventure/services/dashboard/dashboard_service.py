"""Signed-in user's dashboard: hosted trips, joined trips, the next departure
and join requests waiting on the user as host.

Each part is loaded on its own. A failing read is logged and that part comes
back empty; the rest of the dashboard is still returned.
"""
from datetime import datetime, timezone
from typing import Awaitable, List, Optional, Sequence

from jointventure.core.logger import logger
from jointventure.models.trips.trip_participant import ParticipantStatus
from jointventure.repositories.trip_store import TripStore
from jointventure.schemas.dashboard.dashboard import DashboardOut
from jointventure.schemas.trip.participant import PendingRequestOut
from jointventure.schemas.trip.trip_schema import TripOut
from jointventure.schemas.user.user import ProfileOut
from jointventure.services.trips.trip_service import attach_creators

UNKNOWN_TRIP_LABEL = "Unknown Trip"


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def next_upcoming(trips: Sequence[TripOut], now: datetime) -> Optional[TripOut]:
    """Earliest trip starting strictly after ``now``."""
    now = _as_utc(now)
    # sorted() is stable, equal start times keep their incoming order
    for trip in sorted(trips, key=lambda t: _as_utc(t.start_time)):
        if _as_utc(trip.start_time) > now:
            return trip
    return None


class DashboardService:
    def __init__(self, store: TripStore):
        self.store = store

    async def _degrade(self, label: str, user_id: int, pending: Awaitable[list]) -> list:
        try:
            return await pending
        except Exception:
            logger.exception(f"Dashboard: could not load {label} for user {user_id}")
            return []

    async def hosted_trips(self, user_id: int) -> List[TripOut]:
        trips = await self.store.list_trips_by_creator(user_id)
        return await attach_creators(self.store, trips)

    async def joined_trips(self, user_id: int) -> List[TripOut]:
        participations = await self.store.list_participations(user_id, ParticipantStatus.APPROVED)
        if not participations:
            return []
        trips = await self.store.list_trips_by_ids(p.trip_id for p in participations)
        return await attach_creators(self.store, trips)

    async def pending_requests(self, hosted: Sequence[TripOut]) -> List[PendingRequestOut]:
        if not hosted:
            return []
        trips_by_id = {trip.id: trip for trip in hosted}
        requests = await self.store.list_participants_for_trips(trips_by_id, ParticipantStatus.PENDING)
        profiles = await self.store.get_profiles({r.user_id for r in requests})

        result = []
        for request in requests:
            trip = trips_by_id.get(request.trip_id)
            profile = profiles.get(request.user_id)
            result.append(
                PendingRequestOut(
                    trip_id=request.trip_id,
                    user_id=request.user_id,
                    status=request.status,
                    created_at=request.created_at,
                    requester=ProfileOut.model_validate(profile) if profile else None,
                    trip_label=trip.start_location if trip else UNKNOWN_TRIP_LABEL,
                )
            )
        return result

    async def build(self, user_id: int, now: Optional[datetime] = None) -> DashboardOut:
        now = now or datetime.now(timezone.utc)

        hosted = await self._degrade("hosted trips", user_id, self.hosted_trips(user_id))
        joined = await self._degrade("joined trips", user_id, self.joined_trips(user_id))
        requests = await self._degrade("pending requests", user_id, self.pending_requests(hosted))

        return DashboardOut(
            hosted=hosted,
            joined=joined,
            next_trip=next_upcoming(list(hosted) + list(joined), now),
            pending_requests=requests,
        )

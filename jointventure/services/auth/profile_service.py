from fastapi import HTTPException, status
from jointventure.core.exceptions import ProfileNotFound
from jointventure.core.logger import logger
from jointventure.models.user.user import Profile
from jointventure.repositories.trip_store import TripStore
from jointventure.schemas.user.user import ProfileUpdate


class ProfileService:
    def __init__(self, store: TripStore):
        self.store = store

    async def get_profile(self, user_id: int) -> Profile:
        profile = await self.store.get_profile(user_id)
        if not profile:
            raise ProfileNotFound()
        return profile

    async def update_profile(self, user_id: int, update_data: ProfileUpdate) -> Profile:
        update_fields = update_data.model_dump(exclude_unset=True)
        if not update_fields:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update.")

        profile = await self.store.update_profile(user_id, update_fields)
        if profile is None:
            raise ProfileNotFound()

        logger.info(f"Profile {user_id} updated: {sorted(update_fields)}")
        return profile

from fastapi import APIRouter, Depends

from jointventure.dependencies.auth import get_current_user
from jointventure.dependencies.services import get_profile_service
from jointventure.models.user.user import User
from jointventure.schemas.user.user import ProfileOut, ProfileUpdate
from jointventure.services.auth.profile_service import ProfileService

router = APIRouter(tags=["Profile"])


@router.get("/me", response_model=ProfileOut)
async def get_my_profile(
    current_user: User = Depends(get_current_user),
    profiles: ProfileService = Depends(get_profile_service)
):
    return await profiles.get_profile(current_user.id)


@router.put("/me", response_model=ProfileOut)
async def update_my_profile(
    data: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    profiles: ProfileService = Depends(get_profile_service)
):
    return await profiles.update_profile(current_user.id, data)


@router.get("/profiles/{user_id}", response_model=ProfileOut)
async def get_profile(
    user_id: int,
    current_user: User = Depends(get_current_user),
    profiles: ProfileService = Depends(get_profile_service)
):
    return await profiles.get_profile(user_id)

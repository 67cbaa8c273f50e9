from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from jointventure.schemas.user.user import UserCreate, UserLogin, UserOut, RefreshRequest
from jointventure.services.auth import auth as auth_service
from jointventure.core.database import get_db
from jointventure.core.redis_lifecyle import get_redis_client

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post("/register", response_model=UserOut, status_code=201)
async def register(
    user: UserCreate,
    db: AsyncSession = Depends(get_db),
):
    return await auth_service.register_user(user, db)


@router.post("/login")
async def login_route(
    user_data: UserLogin,
    db: AsyncSession = Depends(get_db),
    redis_client=Depends(get_redis_client)
):
    return await auth_service.login_user(user_data.email, user_data.password, db, redis_client)


@router.post("/refresh")
async def refresh_token_route(
    payload: RefreshRequest,
    redis_client=Depends(get_redis_client)
):
    return await auth_service.refresh_access_token(payload.refresh_token, redis_client)


@router.post("/logout")
async def logout(
    payload: Optional[RefreshRequest] = None,
    all_sessions: bool = False,
    redis_client=Depends(get_redis_client)
):
    token = payload.refresh_token if payload else None
    return await auth_service.logout_user(token, redis_client, all_sessions)

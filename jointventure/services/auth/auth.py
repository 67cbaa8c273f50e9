from typing import Optional
from fastapi import HTTPException, status
from jose import JWTError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from jointventure.core.logger import logger
from jointventure.core.security import (
    REFRESH,
    RefreshTokenRegistry,
    create_access_token,
    decode_token,
    hash_password,
    verify_password,
)
from jointventure.models.user.user import Profile, User
from jointventure.schemas.user.user import UserCreate


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


async def _token_pair(user_id, sessions: RefreshTokenRegistry) -> dict:
    return {
        "access_token": create_access_token({"sub": str(user_id)}),
        "refresh_token": await sessions.issue(user_id),
        "token_type": "bearer",
    }


async def register_user(user_data: UserCreate, db: AsyncSession) -> User:
    email = user_data.email.lower()
    if await db.scalar(select(User.id).where(User.email == email)):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already registered")

    user = User(email=email, hashed_password=hash_password(user_data.password))
    db.add(user)
    try:
        await db.flush()
        # the profile shares the user's id and is filled in during onboarding
        db.add(Profile(id=user.id, full_name=user_data.full_name, personality_tags=[]))
        await db.commit()
    except IntegrityError:
        # two sign-ups with the same email raced past the check above
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already registered")

    logger.info(f"Registered user {user.id}")
    return user


async def login_user(email: str, password: str, db: AsyncSession, redis_client) -> dict:
    user = await db.scalar(select(User).where(User.email == email.lower()))
    if user is None or not verify_password(password, user.hashed_password):
        logger.warning(f"Failed login for {email}")
        raise _unauthorized("Invalid credentials")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account disabled")

    return await _token_pair(user.id, RefreshTokenRegistry(redis_client))


async def refresh_access_token(token: str, redis_client) -> dict:
    """Trade a live refresh token for a new pair; the old refresh token is spent."""
    try:
        payload = decode_token(token)
    except JWTError:
        raise _unauthorized("Invalid or expired refresh token")

    user_id, jti = payload.get("sub"), payload.get("jti")
    if not user_id or not jti or payload.get("type") != REFRESH:
        raise _unauthorized("Invalid refresh token payload")

    sessions = RefreshTokenRegistry(redis_client)
    if not await sessions.consume(user_id, jti):
        raise _unauthorized("Refresh token revoked")
    return await _token_pair(user_id, sessions)


async def logout_user(token: Optional[str], redis_client, all_sessions: bool = False) -> dict:
    """Revoke the given refresh token (or every session of its user). Never fails."""
    try:
        payload = decode_token(token) if token else {}
    except JWTError:
        payload = {}

    user_id, jti = payload.get("sub"), payload.get("jti")
    if user_id:
        sessions = RefreshTokenRegistry(redis_client)
        if all_sessions:
            await sessions.revoke_all(user_id)
        elif jti:
            await sessions.revoke(user_id, jti)
        logger.info(f"User {user_id} logged out{' everywhere' if all_sessions else ''}")

    return {"ok": True}

from fastapi import Depends, HTTPException, Query, WebSocketException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Optional
from jointventure.core.database import SessionLocal, get_db
from jointventure.core.security import decode_token
from jointventure.models.user.user import User

security = HTTPBearer()


async def get_user_from_token(token: str, db: AsyncSession) -> Optional[User]:
    """Resolve an access token to an active user, or None."""
    try:
        payload = decode_token(token)
        if payload.get("type") != "access":
            return None
        user_id = int(payload.get("sub"))
    except (JWTError, TypeError, ValueError):
        return None

    user = await db.scalar(select(User).filter(User.id == user_id))
    if user is None or not user.is_active:
        return None
    return user


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> User:
    user = await get_user_from_token(credentials.credentials, db)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def get_current_ws_user(token: str = Query(...)) -> User:
    # browsers cannot set headers on a WebSocket handshake, so the token rides in the query.
    # The session is released before the socket is accepted.
    async with SessionLocal() as db:
        user = await get_user_from_token(token, db)
    if user is None:
        raise WebSocketException(code=status.WS_1008_POLICY_VIOLATION, reason="Could not validate credentials")
    return user

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import jwt
from passlib.context import CryptContext

from jointventure.core.config import settings
from jointventure.core.logger import logger

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ACCESS = "access"
REFRESH = "refresh"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def _encode(subject, token_type: str, lifetime: timedelta, jti: Optional[str] = None, **claims) -> str:
    payload = {
        **claims,
        "sub": str(subject),
        "jti": jti or str(uuid.uuid4()),
        "type": token_type,
        "exp": datetime.now(timezone.utc) + lifetime,
    }
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    claims = {k: v for k, v in data.items() if k != "sub"}
    lifetime = expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    return _encode(data["sub"], ACCESS, lifetime, **claims)


def decode_token(token: str) -> dict:
    """Decode and verify a token; raises jose.JWTError when invalid or expired."""
    return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])


class RefreshTokenRegistry:
    """Server-side record of live refresh tokens.

    Each token id lives at ``refresh:{user}:{jti}``; a sorted set
    ``refreshs:{user}`` orders them by issue time so the oldest sessions can be
    dropped once a user goes over ``MAX_CONCURRENT_REFRESHES``.
    """

    def __init__(self, redis_client, max_sessions: int = settings.MAX_CONCURRENT_REFRESHES):
        self.redis = redis_client
        self.max_sessions = max_sessions
        self.ttl_seconds = settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 3600

    @staticmethod
    def _token_key(user_id, jti: str) -> str:
        return f"refresh:{user_id}:{jti}"

    @staticmethod
    def _index_key(user_id) -> str:
        return f"refreshs:{user_id}"

    async def issue(self, user_id) -> str:
        jti = str(uuid.uuid4())
        issued_at = int(datetime.now(timezone.utc).timestamp())

        await self.redis.hset(self._token_key(user_id, jti), mapping={"created_at": str(issued_at)})
        await self.redis.expire(self._token_key(user_id, jti), self.ttl_seconds)
        await self.redis.zadd(self._index_key(user_id), {jti: issued_at})
        await self.redis.expire(self._index_key(user_id), self.ttl_seconds)
        await self._evict_oldest(user_id)

        return _encode(user_id, REFRESH, timedelta(seconds=self.ttl_seconds), jti=jti)

    async def _evict_oldest(self, user_id) -> None:
        count = await self.redis.zcard(self._index_key(user_id))
        if count <= self.max_sessions:
            return
        stale = await self.redis.zrange(self._index_key(user_id), 0, count - self.max_sessions - 1)
        for jti in stale:
            await self.revoke(user_id, jti)
        logger.info(f"Evicted {len(stale)} refresh sessions for user {user_id}")

    async def consume(self, user_id, jti: str) -> bool:
        """Spend a refresh token. Only one caller can ever get True for a given token."""
        removed = await self.redis.delete(self._token_key(user_id, jti))
        await self.redis.zrem(self._index_key(user_id), jti)
        return bool(removed)

    async def revoke(self, user_id, jti: str) -> None:
        await self.redis.delete(self._token_key(user_id, jti))
        await self.redis.zrem(self._index_key(user_id), jti)

    async def revoke_all(self, user_id) -> None:
        for jti in await self.redis.zrange(self._index_key(user_id), 0, -1):
            await self.redis.delete(self._token_key(user_id, jti))
        await self.redis.delete(self._index_key(user_id))

import asyncio

import pytest
from fastapi import HTTPException

from jointventure.core.config import settings
from jointventure.core.security import (
    create_access_token,
    decode_token,
    hash_password,
    RefreshTokenRegistry,
    verify_password,
)
from jointventure.services.auth.auth import logout_user, refresh_access_token


class MemoryRedis:
    """Just enough of the Redis command set for refresh-token bookkeeping."""

    def __init__(self):
        self.hashes = {}
        self.zsets = {}

    async def hset(self, key, mapping):
        self.hashes.setdefault(key, {}).update(mapping)

    async def expire(self, key, seconds):
        return True

    async def zadd(self, key, mapping):
        self.zsets.setdefault(key, {}).update(mapping)

    async def zcard(self, key):
        return len(self.zsets.get(key, {}))

    async def zrange(self, key, start, end):
        members = sorted(self.zsets.get(key, {}).items(), key=lambda item: item[1])
        names = [name for name, _ in members]
        return names[start:] if end == -1 else names[start:end + 1]

    async def zrem(self, key, member):
        self.zsets.get(key, {}).pop(member, None)

    async def delete(self, *keys):
        # a round trip, so concurrent callers interleave here
        await asyncio.sleep(0)
        removed = 0
        for key in keys:
            if self.hashes.pop(key, None) is not None or self.zsets.pop(key, None) is not None:
                removed += 1
        return removed


def test_password_hashing():
    hashed = hash_password("correct horse")
    assert hashed != "correct horse"
    assert verify_password("correct horse", hashed)
    assert not verify_password("wrong horse", hashed)


def test_access_token_round_trip():
    payload = decode_token(create_access_token({"sub": "7"}))
    assert payload["sub"] == "7"
    assert payload["type"] == "access"
    assert payload["jti"]


async def test_refresh_rotates_the_refresh_token():
    redis_client = MemoryRedis()
    token = await RefreshTokenRegistry(redis_client).issue(5)

    result = await refresh_access_token(token, redis_client)
    assert decode_token(result["access_token"])["sub"] == "5"
    assert result["refresh_token"] != token

    with pytest.raises(HTTPException) as exc:
        await refresh_access_token(token, redis_client)
    assert exc.value.detail == "Refresh token revoked"
    assert (await refresh_access_token(result["refresh_token"], redis_client))["access_token"]


async def test_access_token_cannot_refresh():
    with pytest.raises(HTTPException) as exc:
        await refresh_access_token(create_access_token({"sub": "5"}), MemoryRedis())
    assert exc.value.status_code == 401


async def test_logout_revokes_refresh_token():
    redis_client = MemoryRedis()
    token = await RefreshTokenRegistry(redis_client).issue(5)

    assert (await logout_user(token, redis_client))["ok"]
    with pytest.raises(HTTPException) as exc:
        await refresh_access_token(token, redis_client)
    assert exc.value.detail == "Refresh token revoked"


async def test_logout_without_token_is_a_no_op():
    assert await logout_user(None, MemoryRedis()) == {"ok": True}
    assert await logout_user("not-a-jwt", MemoryRedis()) == {"ok": True}


async def test_oldest_refresh_tokens_are_evicted():
    redis_client = MemoryRedis()
    sessions = RefreshTokenRegistry(redis_client)
    tokens = [await sessions.issue(9) for _ in range(settings.MAX_CONCURRENT_REFRESHES + 1)]

    assert await redis_client.zcard("refreshs:9") == settings.MAX_CONCURRENT_REFRESHES
    with pytest.raises(HTTPException):
        await refresh_access_token(tokens[0], redis_client)
    assert (await refresh_access_token(tokens[-1], redis_client))["token_type"] == "bearer"


async def test_concurrent_refreshes_spend_the_token_once():
    redis_client = MemoryRedis()
    token = await RefreshTokenRegistry(redis_client).issue(5)

    results = await asyncio.gather(
        refresh_access_token(token, redis_client),
        refresh_access_token(token, redis_client),
        return_exceptions=True,
    )

    assert sum(isinstance(r, dict) for r in results) == 1
    failures = [r for r in results if isinstance(r, HTTPException)]
    assert len(failures) == 1
    assert failures[0].status_code == 401

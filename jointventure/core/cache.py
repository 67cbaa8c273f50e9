import json
from typing import Any, Optional
import redis.asyncio as redis
from jointventure.core.config import settings


class RedisCache:
    """JSON values in Redis under a shared key namespace."""

    def __init__(self, redis_client: redis.Redis, namespace: str = settings.CACHE_NAMESPACE):
        self.redis = redis_client
        self.namespace = namespace

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}" if self.namespace else key

    async def get(self, key: str) -> Optional[Any]:
        raw = await self.redis.get(self._key(key))
        return json.loads(raw) if raw else None

    async def set(self, key: str, value: Any, expire: int = settings.TRIP_CACHE_TTL) -> None:
        await self.redis.set(self._key(key), json.dumps(value, default=str), ex=expire)

    async def delete_pattern(self, pattern: str) -> int:
        """Remove every key matching ``pattern``; returns how many were dropped."""
        removed = 0
        batch = []
        async for key in self.redis.scan_iter(match=self._key(pattern), count=100):
            batch.append(key)
            if len(batch) >= 100:
                removed += await self.redis.delete(*batch)
                batch = []
        if batch:
            removed += await self.redis.delete(*batch)
        return removed

    @staticmethod
    def build_key(*parts) -> str:
        return ":".join(str(part) for part in parts)

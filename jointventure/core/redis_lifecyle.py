# jointventure/core/redis_lifecyle.py
import redis.asyncio as redis
from jointventure.core.config import settings
from jointventure.core.cache import RedisCache
from jointventure.core.change_feed import LocalChangeFeed, RedisChangeFeed
from typing import AsyncGenerator, Optional

_redis_client: Optional[redis.Redis] = None
_cache_instance: Optional[RedisCache] = None
_change_feed: Optional[LocalChangeFeed] = None


async def init_redis_client() -> redis.Redis:
    """Initialize and return a Redis client (for startup)."""
    global _redis_client

    if _redis_client is None:
        _redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)
        try:
            await _redis_client.ping()
        except redis.ConnectionError:
            _redis_client = None
            raise Exception("Could not connect to Redis server") from None

    return _redis_client


async def get_redis_client() -> AsyncGenerator[redis.Redis, None]:
    """FastAPI dependency injection for Redis client."""
    client = await init_redis_client()
    yield client


async def get_cache() -> AsyncGenerator[RedisCache, None]:
    """FastAPI dependency injection for RedisCache."""
    global _cache_instance

    if _cache_instance is None:
        client = await init_redis_client()
        _cache_instance = RedisCache(client)

    yield _cache_instance


async def init_change_feed() -> LocalChangeFeed:
    """Create the process-wide change feed and start its Redis listener."""
    global _change_feed

    if _change_feed is None:
        if settings.USE_REDIS_CHANGE_FEED:
            client = await init_redis_client()
            feed = RedisChangeFeed(
                client,
                prefix=settings.CHANGE_FEED_PREFIX,
                retry_delay=settings.CHANGE_FEED_RETRY_SECONDS,
            )
            await feed.start()
            _change_feed = feed
        else:
            _change_feed = LocalChangeFeed()

    return _change_feed


async def get_change_feed() -> AsyncGenerator[LocalChangeFeed, None]:
    """FastAPI dependency injection for the change feed."""
    yield await init_change_feed()


async def close_redis():
    """Stop the feed listener and close the Redis connection on shutdown."""
    global _redis_client, _cache_instance, _change_feed
    if isinstance(_change_feed, RedisChangeFeed):
        await _change_feed.stop()
    _change_feed = None
    _cache_instance = None
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None

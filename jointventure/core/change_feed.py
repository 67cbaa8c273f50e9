"""Realtime change feed.

Writers publish a row after the store has confirmed it; subscribers register
a callback for one table, one event type and an equality filter on row
fields. Delivery is push-only: subscribers are expected to re-read whatever
they need from the store rather than trust the payload for ordering.
"""
import asyncio
import inspect
import json
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

import redis.asyncio as redis
from redis.exceptions import RedisError

from jointventure.core.logger import logger

Row = Dict[str, Any]
Callback = Callable[[Row], Union[Awaitable[None], None]]

INSERT = "INSERT"
UPDATE = "UPDATE"
DELETE = "DELETE"


class Subscription:
    """Disposable handle returned by ``ChangeFeed.subscribe``."""

    def __init__(self, feed: "LocalChangeFeed", table: str, event: str, filters: Row, callback: Callback):
        self.feed = feed
        self.table = table
        self.event = event
        self.filters = filters
        self.callback = callback
        self.closed = False

    def matches(self, table: str, event: str, row: Row) -> bool:
        if self.closed or table != self.table or event != self.event:
            return False
        return all(row.get(key) == value for key, value in self.filters.items())

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.feed._remove(self)


class LocalChangeFeed:
    """In-process feed. Publishing awaits every matching subscriber in turn."""

    def __init__(self):
        self._subscriptions: List[Subscription] = []

    def subscribe(self, table: str, filters: Optional[Row], callback: Callback, event: str = INSERT) -> Subscription:
        subscription = Subscription(self, table, event, dict(filters or {}), callback)
        self._subscriptions.append(subscription)
        logger.debug(f"Subscribed to {event} on {table} with {subscription.filters}")
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    async def publish(self, table: str, row: Row, event: str = INSERT) -> None:
        await self._dispatch(table, event, row)

    async def _dispatch(self, table: str, event: str, row: Row) -> None:
        for subscription in list(self._subscriptions):
            if not subscription.matches(table, event, row):
                continue
            try:
                result = subscription.callback(row)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                # one broken listener must not stop delivery to the others
                logger.exception(f"Change feed subscriber failed for {event} on {table}")


class RedisChangeFeed(LocalChangeFeed):
    """Feed fanned out through Redis pub/sub so every worker sees every write.

    Local subscribers are still kept in-process; a single listener task per
    worker receives from Redis and dispatches to them. A lost connection is
    logged and the listener resubscribes after ``retry_delay`` seconds.
    """

    def __init__(self, redis_client: redis.Redis, prefix: str = "changes", retry_delay: float = 1.0):
        super().__init__()
        self.redis = redis_client
        self.prefix = prefix
        self.retry_delay = retry_delay
        self._pubsub = None
        self._listener: Optional[asyncio.Task] = None

    def channel_for(self, table: str) -> str:
        return f"{self.prefix}:{table}"

    async def _subscribe(self) -> None:
        self._pubsub = self.redis.pubsub()
        await self._pubsub.psubscribe(f"{self.prefix}:*")

    async def _close_pubsub(self) -> None:
        if self._pubsub is None:
            return
        pubsub, self._pubsub = self._pubsub, None
        try:
            await pubsub.punsubscribe()
            await pubsub.aclose()
        except (RedisError, OSError) as e:
            logger.warning(f"Could not close change feed subscription cleanly: {e}")

    async def start(self) -> None:
        if self._listener is not None:
            return
        await self._subscribe()
        self._listener = asyncio.create_task(self._listen())
        self._listener.add_done_callback(self._listener_done)
        logger.info(f"Change feed listening on {self.prefix}:*")

    def _listener_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Change feed listener died: {exc!r}")

    async def stop(self) -> None:
        if self._listener is not None:
            self._listener.cancel()
            try:
                await self._listener
            except asyncio.CancelledError:
                pass
            self._listener = None
        await self._close_pubsub()

    async def publish(self, table: str, row: Row, event: str = INSERT) -> None:
        payload = json.dumps({"event": event, "row": row}, default=str)
        await self.redis.publish(self.channel_for(table), payload)

    async def _listen(self) -> None:
        while True:
            try:
                if self._pubsub is None:
                    await self._subscribe()
                await self._consume()
                logger.warning("Change feed subscription ended, resubscribing")
            except (RedisError, OSError):
                logger.exception(f"Change feed lost Redis, retrying in {self.retry_delay}s")
            await self._close_pubsub()
            await asyncio.sleep(self.retry_delay)

    async def _consume(self) -> None:
        async for message in self._pubsub.listen():
            await self._handle(message)

    async def _handle(self, message: Dict[str, Any]) -> None:
        if message.get("type") != "pmessage":
            return
        channel = message["channel"]
        if isinstance(channel, bytes):
            channel = channel.decode()
        table = channel[len(self.prefix) + 1:]
        try:
            payload = json.loads(message["data"])
        except (TypeError, ValueError):
            logger.warning(f"Dropping malformed change feed payload on {channel}")
            return
        await self._dispatch(table, payload.get("event", INSERT), payload.get("row", {}))

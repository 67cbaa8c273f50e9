import asyncio
from typing import Awaitable, Callable, List, Optional, Union

from fastapi import HTTPException, status

from jointventure.core.change_feed import LocalChangeFeed, Subscription, INSERT, UPDATE, DELETE
from jointventure.core.exceptions import ChatAccessDenied
from jointventure.core.logger import logger
from jointventure.models.trips.trip_participant import ParticipantStatus
from jointventure.repositories.trip_store import StoreFactory, TripStore
from jointventure.schemas.trip.message import MessageOut
from jointventure.schemas.trip.participant import ParticipationState
from jointventure.schemas.user.user import ProfileOut
from jointventure.services.trips.participation import ParticipationService, can_chat, maybe_await

MessagesCallback = Callable[[List[MessageOut]], Union[Awaitable[None], None]]
CloseCallback = Callable[[str], Union[Awaitable[None], None]]


async def load_messages(store: TripStore, trip_id: int) -> List[MessageOut]:
    """A trip's messages in insertion order with each author's profile attached."""
    messages = await store.list_messages(trip_id)
    profiles = await store.get_profiles({m.user_id for m in messages})
    result = []
    for message in messages:
        profile = profiles.get(message.user_id)
        result.append(
            MessageOut.model_validate(message).model_copy(
                update={"user": ProfileOut.model_validate(profile) if profile else None}
            )
        )
    return result


class ChatChannel:
    """Live view of one trip's messages for one viewer.

    Insert notifications only queue a refetch; a per-channel sender task does
    the read and the push, so a slow viewer never holds up the writer or the
    feed. At most one refetch waits in the queue since each one reads the
    whole list anyway.
    """

    def __init__(
        self,
        service: "ChatService",
        trip_id: int,
        user_id: int,
        state: ParticipationState,
        on_messages: MessagesCallback,
        on_close: Optional[CloseCallback] = None,
        store_factory: Optional[StoreFactory] = None,
    ):
        self.service = service
        self.trip_id = trip_id
        self.user_id = user_id
        self.state = state
        self.on_messages = on_messages
        self.on_close = on_close
        self.store_factory = store_factory
        self.closed = False
        self._subscriptions: List[Subscription] = []
        self._lock = asyncio.Lock()
        self._pending: asyncio.Queue = asyncio.Queue(maxsize=1)
        self._sender: Optional[asyncio.Task] = None

    def start(self, feed: LocalChangeFeed) -> None:
        self._subscriptions.append(
            feed.subscribe("trip_messages", {"trip_id": self.trip_id}, self._on_message, event=INSERT)
        )
        self._subscriptions.append(
            feed.subscribe("trips", {"id": self.trip_id}, self._on_trip_deleted, event=DELETE)
        )
        if self.state != ParticipationState.OWNER:
            self._subscriptions.append(
                feed.subscribe(
                    "trip_participants",
                    {"trip_id": self.trip_id, "user_id": self.user_id},
                    self._on_membership_change,
                    event=UPDATE,
                )
            )
        self._sender = asyncio.create_task(self._send_loop())

    async def _fetch(self) -> List[MessageOut]:
        if self.store_factory is None:
            return await load_messages(self.service.store, self.trip_id)
        async with self.store_factory() as store:
            return await load_messages(store, self.trip_id)

    async def refresh(self) -> None:
        async with self._lock:
            if self.closed:
                return
            messages = await self._fetch()
            await maybe_await(self.on_messages(messages))

    def request_refresh(self) -> None:
        if self.closed or self._pending.full():
            return
        self._pending.put_nowait(True)

    async def flush(self) -> None:
        """Wait until every queued refetch has been pushed."""
        if not self.closed:
            await self._pending.join()

    async def _send_loop(self) -> None:
        while not self.closed:
            await self._pending.get()
            try:
                await self.refresh()
            except Exception:
                logger.exception(f"Chat delivery failed for user {self.user_id} on trip {self.trip_id}")
                await self._shutdown("delivery failed")
            finally:
                self._pending.task_done()

    async def _on_message(self, row) -> None:
        self.request_refresh()

    async def _on_membership_change(self, row) -> None:
        if row.get("status") != ParticipantStatus.APPROVED.value:
            logger.info(f"Closing chat for user {self.user_id} on trip {self.trip_id}: status {row.get('status')}")
            await self._shutdown("membership revoked")

    async def _on_trip_deleted(self, row) -> None:
        logger.info(f"Closing chat for user {self.user_id}: trip {self.trip_id} deleted")
        await self._shutdown("trip deleted")

    async def _shutdown(self, reason: str) -> None:
        if self.closed:
            return
        self.close()
        if self.on_close is not None:
            await maybe_await(self.on_close(reason))

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        for subscription in self._subscriptions:
            subscription.close()
        self._subscriptions = []
        while not self._pending.empty():
            self._pending.get_nowait()
            self._pending.task_done()
        # the sender may be the one closing us; it then exits on its own
        if self._sender is not None and self._sender is not asyncio.current_task():
            self._sender.cancel()


class ChatService:
    def __init__(
        self,
        store: TripStore,
        feed: Optional[LocalChangeFeed] = None,
        participation: Optional[ParticipationService] = None,
    ):
        self.store = store
        self.feed = feed
        self.participation = participation or ParticipationService(store, feed)

    async def _require_chat_access(self, trip_id: int, user_id: int) -> ParticipationState:
        _, state = await self.participation.state_for(trip_id, user_id)
        if not can_chat(state):
            logger.warning(f"Chat access denied on trip {trip_id} for user {user_id} ({state.value})")
            raise ChatAccessDenied()
        return state

    async def fetch_messages(self, trip_id: int) -> List[MessageOut]:
        return await load_messages(self.store, trip_id)

    async def list_messages(self, trip_id: int, user_id: int) -> List[MessageOut]:
        await self._require_chat_access(trip_id, user_id)
        return await self.fetch_messages(trip_id)

    async def send_message(self, trip_id: int, user_id: int, content: str) -> MessageOut:
        await self._require_chat_access(trip_id, user_id)
        if not content or not content.strip():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Message cannot be empty")

        message = await self.store.insert_message(trip_id, user_id, content)
        logger.info(f"User {user_id} posted message {message.id} on trip {trip_id}")
        if self.feed is not None:
            await self.feed.publish("trip_messages", message.to_dict(), event=INSERT)

        profile = await self.store.get_profile(user_id)
        return MessageOut.model_validate(message).model_copy(
            update={"user": ProfileOut.model_validate(profile) if profile else None}
        )

    async def open_channel(
        self,
        trip_id: int,
        user_id: int,
        on_messages: MessagesCallback,
        on_close: Optional[CloseCallback] = None,
        store_factory: Optional[StoreFactory] = None,
    ) -> ChatChannel:
        """Subscribe ``user_id`` to the trip's messages and push the current list.

        Only the host and approved members get a channel. With ``store_factory``
        every refetch runs on its own short session instead of this service's
        store, which long-lived sockets must not hold on to.
        """
        if self.feed is None:
            raise RuntimeError("ChatService needs a change feed to open channels")
        state = await self._require_chat_access(trip_id, user_id)

        channel = ChatChannel(self, trip_id, user_id, state, on_messages, on_close, store_factory)
        channel.start(self.feed)
        await channel.refresh()
        return channel

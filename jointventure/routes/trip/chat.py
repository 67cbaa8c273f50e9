import asyncio
from typing import List

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status

from jointventure.core.change_feed import LocalChangeFeed
from jointventure.core.config import settings
from jointventure.core.logger import logger
from jointventure.core.redis_lifecyle import get_change_feed
from jointventure.dependencies.auth import get_current_user, get_current_ws_user
from jointventure.dependencies.services import get_chat_service, get_store_factory
from jointventure.repositories.trip_store import StoreFactory
from jointventure.models.user.user import User
from jointventure.schemas.trip.message import MessageCreate, MessageOut
from jointventure.services.trips.chat_service import ChatService
from jointventure.services.trips.participation import can_chat

router = APIRouter(prefix="/trips", tags=["Trip Chat"])


@router.get("/{trip_id}/messages", response_model=List[MessageOut])
async def list_messages(
    trip_id: int,
    current_user: User = Depends(get_current_user),
    chat: ChatService = Depends(get_chat_service)
):
    return await chat.list_messages(trip_id, current_user.id)


@router.post("/{trip_id}/messages", response_model=MessageOut, status_code=status.HTTP_201_CREATED)
async def send_message(
    trip_id: int,
    payload: MessageCreate,
    current_user: User = Depends(get_current_user),
    chat: ChatService = Depends(get_chat_service)
):
    return await chat.send_message(trip_id, current_user.id, payload.content)


async def _drain(websocket: WebSocket) -> None:
    # incoming frames are ignored; this only notices the client leaving
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        return


@router.websocket("/{trip_id}/chat/ws")
async def chat_socket(
    websocket: WebSocket,
    trip_id: int,
    current_user: User = Depends(get_current_ws_user),
    feed: LocalChangeFeed = Depends(get_change_feed),
    store_factory: StoreFactory = Depends(get_store_factory)
):
    """Pushes the full message list on connect and after every new message.

    The socket is read-only; messages are sent through the POST endpoint.
    No database session is held while it stays open: the gate check and
    every refetch run on short sessions of their own.
    """
    async with store_factory() as store:
        chat = ChatService(store, feed)
        try:
            _, state = await chat.participation.state_for(trip_id, current_user.id)
        except HTTPException as exc:
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=str(exc.detail))
            return
    if not can_chat(state):
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Chat is for approved members only")
        return

    await websocket.accept()
    revoked = asyncio.Event()
    close_reason = {"reason": ""}

    def on_close(reason: str):
        close_reason["reason"] = reason
        revoked.set()

    async def push(messages: List[MessageOut]):
        payload = [m.model_dump(mode="json") for m in messages]
        try:
            await asyncio.wait_for(websocket.send_json(payload), timeout=settings.CHAT_SEND_TIMEOUT)
        except asyncio.TimeoutError:
            logger.warning(f"Dropping slow chat socket for user {current_user.id} on trip {trip_id}")
            on_close("client too slow")

    try:
        async with store_factory() as store:
            channel = await ChatService(store, feed).open_channel(
                trip_id, current_user.id, push, on_close=on_close, store_factory=store_factory
            )
    except HTTPException as exc:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=str(exc.detail))
        return

    receiver = asyncio.create_task(_drain(websocket))
    watcher = asyncio.create_task(revoked.wait())
    try:
        await asyncio.wait({receiver, watcher}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        channel.close()
        for task in (receiver, watcher):
            task.cancel()
        await asyncio.gather(receiver, watcher, return_exceptions=True)

    if revoked.is_set():
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=close_reason["reason"])
    else:
        logger.info(f"Chat socket closed by user {current_user.id} on trip {trip_id}")

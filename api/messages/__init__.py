"""Messaging API endpoints and the realtime message WebSocket."""

import asyncio
import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel

from auth import AuthManager
from gate import SessionGate
from messaging import (
    ConversationPartner, InvalidMessageError, Message, MessageError,
    MessageManager, Sender
)
from messaging.realtime import MessageFeed
from ..dependencies import (
    get_auth_manager, get_current_seller, get_message_feed,
    get_message_manager, inflight
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/messages",
    tags=["Messages"]
)

ws_router = APIRouter(
    prefix="/ws",
    tags=["WebSocket"]
)

# Seconds between session re-checks on an idle socket
IDLE_CHECK_INTERVAL = 30

class SendMessageRequest(BaseModel):
    """Request model for sending a message."""
    message: str

@router.get("/conversations", response_model=List[ConversationPartner])
async def conversations(
    seller_id: UUID = Depends(get_current_seller),
    messages: MessageManager = Depends(get_message_manager)
):
    """Customers who have messaged the seller."""
    try:
        return await messages.list_conversation_partners(seller_id)
    except MessageError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )

@router.get("/{customer_id}", response_model=List[Message])
async def conversation(
    customer_id: UUID,
    seller_id: UUID = Depends(get_current_seller),
    messages: MessageManager = Depends(get_message_manager)
):
    """Messages with one customer, oldest first."""
    try:
        return await messages.list_messages(seller_id, customer_id)
    except MessageError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )

@router.post("/{customer_id}", response_model=Message, status_code=status.HTTP_201_CREATED)
async def send_message(
    customer_id: UUID,
    request: SendMessageRequest,
    seller_id: UUID = Depends(get_current_seller),
    messages: MessageManager = Depends(get_message_manager)
):
    """Send a message to a customer as the seller."""
    async with inflight.hold("message", seller_id, customer_id, request.message.strip()):
        try:
            return await messages.send_message(seller_id, customer_id, request.message, Sender.SELLER)
        except InvalidMessageError as e:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=str(e)
            )
        except MessageError as e:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=str(e)
            )

@ws_router.websocket("/messages")
async def message_stream(
    websocket: WebSocket,
    token: str,
    customer_id: Optional[UUID] = None,
    auth: AuthManager = Depends(get_auth_manager),
    message_feed: MessageFeed = Depends(get_message_feed)
):
    """Stream the seller's new messages, optionally for one customer.

    The session token is passed as a query parameter. The socket closes when
    the session stops being a seller session, e.g. on sign-out.
    """
    gate = SessionGate(auth, token)
    await gate.check()
    if not gate.is_authenticated:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    seller_id = gate.user_id
    # None wakes the loop to re-read the gate state
    queue: "asyncio.Queue[Optional[Message]]" = asyncio.Queue()

    async def forward(message: Message) -> None:
        if message.seller_id != seller_id:
            return
        if customer_id and message.customer_id != customer_id:
            return
        await queue.put(message)

    async def wake(event, session) -> None:
        await queue.put(None)

    await websocket.accept()
    if not message_feed.running:
        await message_feed.start()

    # The gate must see auth events before wake() does
    detach = gate.attach()
    unwatch = auth.on_auth_state_change(wake)
    unsubscribe = message_feed.on_new_message(forward)
    logger.info(f"Message stream opened for seller {seller_id}")

    async def drain() -> None:
        # Client frames are ignored; receiving surfaces the disconnect
        while True:
            await websocket.receive_text()

    receiver = asyncio.create_task(drain())
    disconnected = False
    try:
        while gate.is_authenticated:
            getter = asyncio.create_task(queue.get())
            done, _ = await asyncio.wait(
                {getter, receiver},
                timeout=IDLE_CHECK_INTERVAL,
                return_when=asyncio.FIRST_COMPLETED
            )
            if receiver in done:
                getter.cancel()
                disconnected = True
                break
            if getter not in done:
                getter.cancel()
                continue
            message = getter.result()
            if message is None or not gate.is_authenticated:
                continue
            await websocket.send_json({
                "type": "message",
                "data": jsonable_encoder(message)
            })
        if not disconnected:
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
    except WebSocketDisconnect:
        pass
    finally:
        unsubscribe()
        unwatch()
        detach()
        receiver.cancel()
        logger.info(f"Message stream closed for seller {seller_id}")

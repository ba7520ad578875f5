"""Websocket endpoint streaming conversation and notification events."""

from __future__ import annotations

import logging
from typing import Any

import anyio
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from app.application.realtime import STATE_SYNCED
from app.application.realtime.runtime import subscription_registry, typing_registry
from app.infrastructure.database import SessionLocal
from app.infrastructure.notifications import (
    EVENT_CONVERSATION_LIST_CHANGED,
    EVENT_TYPING,
    EVENT_UNREAD_COUNT_CHANGED,
    notification_manager,
    presentation_publisher,
    serialize_conversation,
    serialize_typing_indicator,
)
from app.infrastructure.repositories import NotificationRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/realtime", tags=["realtime"])


def _acknowledge(user_id: str, ids: list[Any]) -> int:
    session = SessionLocal()
    try:
        return NotificationRepository(session).mark_as_read(
            [str(notification_id) for notification_id in ids], user_id=user_id
        )
    finally:
        session.close()


async def _handle_frame(websocket: WebSocket, user_id: str, message: dict[str, Any]) -> None:
    message_type = message.get("type")
    if message_type == "ping":
        await websocket.send_json({"type": "pong"})
        return

    if message_type == "typing":
        conversation_id = message.get("conversation_id")
        recipient_id = message.get("recipient_id")
        if not isinstance(conversation_id, str) or not isinstance(recipient_id, str):
            return
        indicator = typing_registry.signal(user_id, conversation_id)
        presentation_publisher.typing([recipient_id], indicator)
        return

    if message_type == "ack":
        ids = message.get("ids", [])
        if isinstance(ids, list) and ids:
            await anyio.to_thread.run_sync(_acknowledge, user_id, ids)
        return

    logger.debug("Ignoring websocket frame %r from %s", message_type, user_id)


@router.websocket("/ws")
async def realtime_websocket(websocket: WebSocket) -> None:
    """Stream the live conversation view of the ``user_id`` query parameter."""

    user_id = (websocket.query_params.get("user_id") or "").strip()
    if not user_id:
        await websocket.close(code=1008)
        return

    await notification_manager.connect(user_id, websocket)
    subscription = subscription_registry.acquire(user_id)
    try:
        if subscription.state == STATE_SYNCED:
            # Joining an already synchronized view: replay its snapshot.
            await websocket.send_json(
                {
                    "type": EVENT_CONVERSATION_LIST_CHANGED,
                    "data": [serialize_conversation(c) for c in subscription.conversations()],
                }
            )
            await websocket.send_json(
                {"type": EVENT_UNREAD_COUNT_CHANGED, "data": {"total": subscription.unread_total}}
            )
            conversation_ids = [conversation.id for conversation in subscription.conversations()]
            for indicator in typing_registry.visible_to(user_id, conversation_ids):
                await websocket.send_json(
                    {"type": EVENT_TYPING, "data": serialize_typing_indicator(indicator)}
                )
        while True:
            try:
                message = await websocket.receive_json()
            except ValueError:
                continue
            if isinstance(message, dict):
                await _handle_frame(websocket, user_id, message)
    except WebSocketDisconnect:
        pass
    finally:
        notification_manager.disconnect(user_id, websocket)
        await subscription_registry.release(user_id)

"""Serialize realtime payloads and push them to websocket subscribers."""

from __future__ import annotations

import asyncio
import copy
import logging
from typing import Any, Iterable, Sequence

from anyio import from_thread

from app.domain.entities import Conversation, Message, Notification, TypingIndicator
from app.utils import isoformat_or_none

from .manager import NotificationConnectionManager, notification_manager

logger = logging.getLogger(__name__)

EVENT_CONVERSATION_LIST_CHANGED = "conversation-list-changed"
EVENT_CONVERSATION_UPDATED = "conversation-updated"
EVENT_NOTIFICATION_RECEIVED = "notification-received"
EVENT_UNREAD_COUNT_CHANGED = "unread-count-changed"
EVENT_TYPING = "typing"
EVENT_SUBSCRIPTION_STATE = "subscription-state"


class PresentationPublisher:
    """Deliver presentation-layer events to the connections of a user.

    Delivery is fire and forget: failures are not retried, the persisted
    state plus the next cold load are the durable fallback.
    """

    def __init__(self, manager: NotificationConnectionManager) -> None:
        self._manager = manager
        self._tasks: set[asyncio.Task] = set()

    def conversation_list_changed(self, user_id: str, conversations: Sequence[Conversation]) -> None:
        self.dispatch(
            user_id,
            event_type=EVENT_CONVERSATION_LIST_CHANGED,
            payload=[serialize_conversation(conversation) for conversation in conversations],
        )

    def conversation_updated(self, user_id: str, conversation: Conversation) -> None:
        self.dispatch(
            user_id,
            event_type=EVENT_CONVERSATION_UPDATED,
            payload=serialize_conversation(conversation),
        )

    def notification_received(self, user_id: str, notification: Notification) -> None:
        self.dispatch(
            user_id,
            event_type=EVENT_NOTIFICATION_RECEIVED,
            payload=serialize_notification(notification),
        )

    def unread_count_changed(self, user_id: str, total: int) -> None:
        self.dispatch(user_id, event_type=EVENT_UNREAD_COUNT_CHANGED, payload={"total": total})

    def subscription_state_changed(self, user_id: str, state: str) -> None:
        self.dispatch(user_id, event_type=EVENT_SUBSCRIPTION_STATE, payload={"state": state})

    def typing(self, user_ids: Iterable[str], indicator: TypingIndicator) -> None:
        payload = serialize_typing_indicator(indicator)
        for user_id in set(user_ids):
            self.dispatch(user_id, event_type=EVENT_TYPING, payload=payload)

    def dispatch(self, user_id: str, *, event_type: str, payload: Any) -> None:
        """Schedule a realtime ``event_type`` event for ``user_id``."""

        if not user_id:
            return
        message = {"type": event_type, "data": copy.deepcopy(payload)}
        self._schedule_send(user_id, message)

    def _schedule_send(self, user_id: str, message: dict[str, Any]) -> None:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            try:
                from_thread.run_sync(self._start_send, user_id, message)
            except RuntimeError:
                # Neither on the event loop nor in one of its worker threads:
                # there is no connection to deliver to.
                logger.debug("Dropping %s event for %s outside the event loop", message["type"], user_id)
        else:
            self._start_send(user_id, message)

    def _start_send(self, user_id: str, message: dict[str, Any]) -> None:
        task = asyncio.get_running_loop().create_task(self._manager.send_to_user(user_id, message))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)


def serialize_message(message: Message) -> dict[str, Any]:
    """Return the websocket payload representation for ``message``."""

    return {
        "id": message.id,
        "sender_id": message.sender_id,
        "recipient_id": message.recipient_id,
        "related_entity_id": message.related_entity_id,
        "subject": message.subject,
        "content": message.content,
        "message_type": message.message_type,
        "priority": message.priority,
        "is_read": message.is_read,
        "created_at": isoformat_or_none(message.created_at),
        "read_at": isoformat_or_none(message.read_at),
    }


def serialize_conversation(conversation: Conversation) -> dict[str, Any]:
    """Return the websocket payload representation for ``conversation``."""

    return {
        "id": conversation.id,
        "participant_ids": list(conversation.participant_ids),
        "related_entity_id": conversation.related_entity_id,
        "last_message": serialize_message(conversation.last_message),
        "unread_count": conversation.unread_count,
        "message_count": conversation.message_count,
        "created_at": isoformat_or_none(conversation.created_at),
        "updated_at": isoformat_or_none(conversation.updated_at),
    }


def serialize_typing_indicator(indicator: TypingIndicator) -> dict[str, Any]:
    return {
        "user_id": indicator.user_id,
        "conversation_id": indicator.conversation_id,
        "expires_at": isoformat_or_none(indicator.expires_at),
    }


def serialize_notification(notification: Notification) -> dict[str, Any]:
    """Return the websocket payload representation for ``notification``."""

    return {
        "id": notification.id,
        "user_id": notification.user_id,
        "type": notification.type,
        "title": notification.title,
        "content": notification.content,
        "related_data": notification.related_data or {},
        "urgency": notification.urgency,
        "is_read": notification.is_read,
        "created_at": isoformat_or_none(notification.created_at),
    }


presentation_publisher = PresentationPublisher(notification_manager)


__all__ = [
    "PresentationPublisher",
    "presentation_publisher",
    "serialize_conversation",
    "serialize_message",
    "serialize_notification",
    "serialize_typing_indicator",
    "EVENT_CONVERSATION_LIST_CHANGED",
    "EVENT_CONVERSATION_UPDATED",
    "EVENT_NOTIFICATION_RECEIVED",
    "EVENT_UNREAD_COUNT_CHANGED",
    "EVENT_TYPING",
    "EVENT_SUBSCRIPTION_STATE",
]

"""Process-wide wiring of the realtime components."""

from __future__ import annotations

from datetime import datetime

from app.application.use_cases.messaging import OptimisticChange, load_conversation_messages
from app.application.use_cases.notifications import notify_message_received
from app.config import get_settings
from app.domain.entities import Message
from app.infrastructure.database import SessionLocal
from app.infrastructure.feed import change_feed
from app.infrastructure.notifications import presentation_publisher
from app.infrastructure.repositories import MessageQuery, MessageRepository

from .registry import SubscriptionRegistry
from .router import ConversationSubscription
from .typing_indicators import TypingIndicatorRegistry
from .worker import NotificationWorker

settings = get_settings()


def load_messages(user_id: str) -> list[Message]:
    session = SessionLocal()
    try:
        return load_conversation_messages(session, user_id)
    finally:
        session.close()


def load_messages_since(since: datetime) -> list[Message]:
    session = SessionLocal()
    try:
        rows, _ = MessageRepository(session).query(
            MessageQuery(created_from=since), descending=False
        )
        return list(rows)
    finally:
        session.close()


def notify_message(message: Message) -> None:
    session = SessionLocal()
    try:
        notify_message_received(session, message=message, publisher=presentation_publisher)
    finally:
        session.close()


def create_subscription(user_id: str) -> ConversationSubscription:
    return ConversationSubscription(
        user_id,
        feed=change_feed,
        load_messages=load_messages,
        sink=presentation_publisher,
        notify=notify_message,
        initial_delay=settings.feed_reconnect_initial_delay,
        max_delay=settings.feed_reconnect_max_delay,
        max_attempts=settings.feed_reconnect_max_attempts,
    )


subscription_registry = SubscriptionRegistry(create_subscription)
typing_registry = TypingIndicatorRegistry(settings.typing_indicator_ttl_seconds)
notification_worker = NotificationWorker(
    feed=change_feed,
    notify=notify_message,
    load_since=load_messages_since,
    initial_delay=settings.feed_reconnect_initial_delay,
    max_delay=settings.feed_reconnect_max_delay,
    max_attempts=settings.feed_reconnect_max_attempts,
)


def submit_change(user_id: str, change: OptimisticChange) -> bool:
    return subscription_registry.submit(user_id, change)


__all__ = [
    "create_subscription",
    "load_messages",
    "notification_worker",
    "notify_message",
    "submit_change",
    "subscription_registry",
    "typing_registry",
]

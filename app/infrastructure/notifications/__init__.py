"""Realtime delivery helpers for the infrastructure layer."""

from .manager import NotificationConnectionManager, notification_manager
from .publisher import (
    EVENT_CONVERSATION_LIST_CHANGED,
    EVENT_CONVERSATION_UPDATED,
    EVENT_NOTIFICATION_RECEIVED,
    EVENT_SUBSCRIPTION_STATE,
    EVENT_TYPING,
    EVENT_UNREAD_COUNT_CHANGED,
    PresentationPublisher,
    presentation_publisher,
    serialize_conversation,
    serialize_message,
    serialize_notification,
    serialize_typing_indicator,
)

__all__ = [
    "NotificationConnectionManager",
    "notification_manager",
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

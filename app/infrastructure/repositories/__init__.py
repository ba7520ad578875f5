"""Repository implementations for infrastructure layer."""

from .message_repository import MessageQuery, MessageRepository
from .notification_repository import NotificationRepository

__all__ = [
    "MessageQuery",
    "MessageRepository",
    "NotificationRepository",
]

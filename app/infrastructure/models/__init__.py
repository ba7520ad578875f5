"""ORM models used by the application infrastructure."""

from .message import MessageModel
from .notification import NotificationModel

__all__ = [
    "MessageModel",
    "NotificationModel",
]

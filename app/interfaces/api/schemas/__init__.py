from .conversation import ConversationRead
from .message import (
    MarkAllReadRequest,
    MarkAllReadResponse,
    MessageCreate,
    MessagePage,
    MessageRead,
    MessageReadStateUpdate,
)
from .notification import (
    GamificationEventCreate,
    GamificationEventResponse,
    NotificationBulkResponse,
    NotificationPage,
    NotificationRead,
)

__all__ = [
    "ConversationRead",
    "GamificationEventCreate",
    "GamificationEventResponse",
    "MarkAllReadRequest",
    "MarkAllReadResponse",
    "MessageCreate",
    "MessagePage",
    "MessageRead",
    "MessageReadStateUpdate",
    "NotificationBulkResponse",
    "NotificationPage",
    "NotificationRead",
]

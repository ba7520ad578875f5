"""Realtime conversation views driven by the change feed."""

from .registry import SubscriptionRegistry
from .router import (
    STATE_CLOSED,
    STATE_CONNECTING,
    STATE_DEGRADED,
    STATE_SYNCED,
    ConversationSubscription,
    PresentationSink,
)
from .typing_indicators import TypingIndicatorRegistry
from .worker import NotificationWorker

__all__ = [
    "ConversationSubscription",
    "NotificationWorker",
    "PresentationSink",
    "STATE_CLOSED",
    "STATE_CONNECTING",
    "STATE_DEGRADED",
    "STATE_SYNCED",
    "SubscriptionRegistry",
    "TypingIndicatorRegistry",
]

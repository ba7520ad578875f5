"""Domain entities exposed by the application."""

from .conversation import GENERAL_THREAD, Conversation, ConversationKey
from .feed_event import (
    FEED_EVENT_DELETE,
    FEED_EVENT_INSERT,
    FEED_EVENT_UPDATE,
    FEED_TABLE_MESSAGES,
    FEED_TABLE_NOTIFICATIONS,
    FeedEvent,
)
from .message import (
    MESSAGE_PRIORITIES,
    MESSAGE_PRIORITY_HIGH,
    MESSAGE_PRIORITY_LOW,
    MESSAGE_PRIORITY_NORMAL,
    MESSAGE_TYPE_ANNOUNCEMENT,
    MESSAGE_TYPE_BEHAVIOR_REPORT,
    MESSAGE_TYPE_GENERAL,
    MESSAGE_TYPE_PROGRESS_REPORT,
    MESSAGE_TYPES,
    Message,
)
from .notification import (
    GAMIFICATION_NOTIFICATION_TYPES,
    NOTIFICATION_ANNOUNCEMENT,
    NOTIFICATION_BADGE_EARNED,
    NOTIFICATION_BEHAVIOR_LOGGED,
    NOTIFICATION_MESSAGE,
    NOTIFICATION_MILESTONE_ACHIEVED,
    NOTIFICATION_REWARD_REDEEMED,
    NOTIFICATION_STREAK_BROKEN,
    NOTIFICATION_TYPES,
    URGENCY_INFO,
    URGENCY_SUCCESS,
    URGENCY_WARNING,
    GamificationEvent,
    Notification,
)
from .typing_indicator import TypingIndicator

__all__ = [
    "Conversation",
    "ConversationKey",
    "GENERAL_THREAD",
    "FeedEvent",
    "FEED_EVENT_INSERT",
    "FEED_EVENT_UPDATE",
    "FEED_EVENT_DELETE",
    "FEED_TABLE_MESSAGES",
    "FEED_TABLE_NOTIFICATIONS",
    "Message",
    "MESSAGE_TYPES",
    "MESSAGE_TYPE_GENERAL",
    "MESSAGE_TYPE_BEHAVIOR_REPORT",
    "MESSAGE_TYPE_PROGRESS_REPORT",
    "MESSAGE_TYPE_ANNOUNCEMENT",
    "MESSAGE_PRIORITIES",
    "MESSAGE_PRIORITY_HIGH",
    "MESSAGE_PRIORITY_NORMAL",
    "MESSAGE_PRIORITY_LOW",
    "Notification",
    "GamificationEvent",
    "NOTIFICATION_TYPES",
    "GAMIFICATION_NOTIFICATION_TYPES",
    "NOTIFICATION_BEHAVIOR_LOGGED",
    "NOTIFICATION_REWARD_REDEEMED",
    "NOTIFICATION_BADGE_EARNED",
    "NOTIFICATION_MILESTONE_ACHIEVED",
    "NOTIFICATION_STREAK_BROKEN",
    "NOTIFICATION_MESSAGE",
    "NOTIFICATION_ANNOUNCEMENT",
    "URGENCY_INFO",
    "URGENCY_SUCCESS",
    "URGENCY_WARNING",
    "TypingIndicator",
]

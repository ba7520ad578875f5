"""Domain entity representing a user notification."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

NOTIFICATION_BEHAVIOR_LOGGED = "behavior_logged"
NOTIFICATION_REWARD_REDEEMED = "reward_redeemed"
NOTIFICATION_BADGE_EARNED = "badge_earned"
NOTIFICATION_MILESTONE_ACHIEVED = "milestone_achieved"
NOTIFICATION_STREAK_BROKEN = "streak_broken"
NOTIFICATION_MESSAGE = "message"
NOTIFICATION_ANNOUNCEMENT = "announcement"

GAMIFICATION_NOTIFICATION_TYPES = (
    NOTIFICATION_BEHAVIOR_LOGGED,
    NOTIFICATION_REWARD_REDEEMED,
    NOTIFICATION_BADGE_EARNED,
    NOTIFICATION_MILESTONE_ACHIEVED,
    NOTIFICATION_STREAK_BROKEN,
)
NOTIFICATION_TYPES = GAMIFICATION_NOTIFICATION_TYPES + (
    NOTIFICATION_MESSAGE,
    NOTIFICATION_ANNOUNCEMENT,
)

URGENCY_INFO = "info"
URGENCY_SUCCESS = "success"
URGENCY_WARNING = "warning"


@dataclass
class Notification:
    """Information message delivered to a specific user."""

    id: str | None
    user_id: str
    type: str
    title: str
    content: str
    source_event_id: str
    related_data: dict[str, Any] = field(default_factory=dict)
    urgency: str = URGENCY_INFO
    is_read: bool = False
    created_at: datetime | None = None


@dataclass(frozen=True)
class GamificationEvent:
    """Insert observed on the gamification log that should notify a user."""

    source_event_id: str
    user_id: str
    kind: str
    data: dict[str, Any] = field(default_factory=dict)


__all__ = [
    "Notification",
    "GamificationEvent",
    "NOTIFICATION_BEHAVIOR_LOGGED",
    "NOTIFICATION_REWARD_REDEEMED",
    "NOTIFICATION_BADGE_EARNED",
    "NOTIFICATION_MILESTONE_ACHIEVED",
    "NOTIFICATION_STREAK_BROKEN",
    "NOTIFICATION_MESSAGE",
    "NOTIFICATION_ANNOUNCEMENT",
    "GAMIFICATION_NOTIFICATION_TYPES",
    "NOTIFICATION_TYPES",
    "URGENCY_INFO",
    "URGENCY_SUCCESS",
    "URGENCY_WARNING",
]

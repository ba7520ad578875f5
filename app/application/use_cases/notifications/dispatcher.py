"""Classify qualifying events into notifications and deliver them once."""

from __future__ import annotations

import logging
from typing import Any, Protocol

from sqlalchemy.orm import Session

from app.domain.entities import (
    GAMIFICATION_NOTIFICATION_TYPES,
    MESSAGE_PRIORITY_HIGH,
    MESSAGE_TYPE_ANNOUNCEMENT,
    NOTIFICATION_ANNOUNCEMENT,
    NOTIFICATION_BADGE_EARNED,
    NOTIFICATION_BEHAVIOR_LOGGED,
    NOTIFICATION_MESSAGE,
    NOTIFICATION_MILESTONE_ACHIEVED,
    NOTIFICATION_REWARD_REDEEMED,
    NOTIFICATION_STREAK_BROKEN,
    URGENCY_INFO,
    URGENCY_SUCCESS,
    URGENCY_WARNING,
    GamificationEvent,
    Message,
    Notification,
)
from app.domain.errors import DuplicateNotificationError, ValidationError
from app.infrastructure.notifications import presentation_publisher
from app.infrastructure.repositories import NotificationRepository
from app.utils import now_in_app_timezone

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    def notification_received(self, user_id: str, notification: Notification) -> None: ...


_GAMIFICATION_URGENCY = {
    NOTIFICATION_BADGE_EARNED: URGENCY_SUCCESS,
    NOTIFICATION_MILESTONE_ACHIEVED: URGENCY_SUCCESS,
    NOTIFICATION_STREAK_BROKEN: URGENCY_WARNING,
}


def message_source_event_id(message: Message) -> str:
    return f"message:{message.id}"


def build_message_notification(message: Message) -> Notification:
    """Describe a freshly inserted message for its recipient."""

    if message.message_type == MESSAGE_TYPE_ANNOUNCEMENT:
        kind = NOTIFICATION_ANNOUNCEMENT
        title = "New announcement"
        content = f"New announcement: {message.subject or message.content}"
    else:
        kind = NOTIFICATION_MESSAGE
        title = "New message"
        if message.related_entity_id:
            content = f"New message from {message.sender_id} about {message.related_entity_id}"
        else:
            content = f"New message from {message.sender_id}"

    urgency = URGENCY_WARNING if message.priority == MESSAGE_PRIORITY_HIGH else URGENCY_INFO
    return Notification(
        id=None,
        user_id=message.recipient_id,
        type=kind,
        title=title,
        content=content,
        source_event_id=message_source_event_id(message),
        related_data={
            "message_id": message.id,
            "sender_id": message.sender_id,
            "related_entity_id": message.related_entity_id,
            "message_type": message.message_type,
            "priority": message.priority,
        },
        urgency=urgency,
    )


def _describe_gamification(kind: str, data: dict[str, Any]) -> tuple[str, str]:
    student = data.get("student_name") or data.get("student_id") or "A student"
    if kind == NOTIFICATION_BEHAVIOR_LOGGED:
        points = data.get("points", 0)
        behavior = data.get("behavior_name") or "a behavior"
        return "Behavior logged", f"{student} earned {points} points for {behavior}"
    if kind == NOTIFICATION_REWARD_REDEEMED:
        return "Reward redeemed", f"{student} earned the reward: {data.get('reward_name') or 'a reward'}"
    if kind == NOTIFICATION_BADGE_EARNED:
        return "Badge earned", f"{student} earned a new badge: {data.get('badge_name') or 'a badge'}"
    if kind == NOTIFICATION_MILESTONE_ACHIEVED:
        milestone = data.get("milestone") or "a new milestone"
        return "Milestone achieved", f"{student} reached {milestone}"
    streak = data.get("streak_days")
    if streak:
        return "Streak broken", f"{student}'s {streak}-day streak has ended"
    return "Streak broken", f"{student}'s streak has ended"


def build_gamification_notification(event: GamificationEvent) -> Notification:
    if event.kind not in GAMIFICATION_NOTIFICATION_TYPES:
        raise ValidationError(f"Unknown gamification event '{event.kind}'")
    if not event.user_id:
        raise ValidationError("A target user is required")
    if not event.source_event_id:
        raise ValidationError("A source event id is required")
    title, content = _describe_gamification(event.kind, dict(event.data))
    return Notification(
        id=None,
        user_id=event.user_id,
        type=event.kind,
        title=title,
        content=content,
        source_event_id=event.source_event_id,
        related_data=dict(event.data),
        urgency=_GAMIFICATION_URGENCY.get(event.kind, URGENCY_INFO),
    )


def _persist_notification(
    session: Session,
    notification: Notification,
    *,
    publisher: NotificationSink,
) -> Notification | None:
    """Store ``notification`` and push it live unless its source was seen before."""

    repository = NotificationRepository(session)
    existing = repository.get_by_source(
        user_id=notification.user_id, source_event_id=notification.source_event_id
    )
    if existing is not None:
        logger.debug("Notification for %s already delivered", notification.source_event_id)
        return None
    if notification.created_at is None:
        notification.created_at = now_in_app_timezone()
    try:
        saved = repository.create(notification)
    except DuplicateNotificationError:
        logger.debug("Notification for %s created concurrently", notification.source_event_id)
        return None
    publisher.notification_received(saved.user_id, saved)
    return saved


def notify_message_received(
    session: Session,
    *,
    message: Message,
    publisher: NotificationSink = presentation_publisher,
) -> Notification | None:
    """Notify the recipient of ``message``; returns ``None`` for repeats."""

    if not message.id or message.is_deleted:
        return None
    return _persist_notification(session, build_message_notification(message), publisher=publisher)


def notify_gamification_event(
    session: Session,
    *,
    event: GamificationEvent,
    publisher: NotificationSink = presentation_publisher,
) -> Notification | None:
    """Notify the owner of a gamification log insert; returns ``None`` for repeats."""

    return _persist_notification(session, build_gamification_notification(event), publisher=publisher)


__all__ = [
    "NotificationSink",
    "build_gamification_notification",
    "build_message_notification",
    "message_source_event_id",
    "notify_gamification_event",
    "notify_message_received",
]

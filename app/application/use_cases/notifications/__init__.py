"""Public helpers for emitting and managing user notifications."""

from .commands import (
    clear_all_notifications,
    delete_notification,
    list_notifications,
    mark_all_notifications_read,
    mark_notification_read,
    report_gamification_event,
)
from .dispatcher import (
    build_gamification_notification,
    build_message_notification,
    message_source_event_id,
    notify_gamification_event,
    notify_message_received,
)

__all__ = [
    "build_gamification_notification",
    "build_message_notification",
    "clear_all_notifications",
    "delete_notification",
    "list_notifications",
    "mark_all_notifications_read",
    "mark_notification_read",
    "message_source_event_id",
    "notify_gamification_event",
    "notify_message_received",
    "report_gamification_event",
]

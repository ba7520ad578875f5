"""Domain entity representing a directed message between two users."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

_EPOCH_FLOOR = datetime.min.replace(tzinfo=timezone.utc)

MESSAGE_TYPE_GENERAL = "general"
MESSAGE_TYPE_BEHAVIOR_REPORT = "behavior_report"
MESSAGE_TYPE_PROGRESS_REPORT = "progress_report"
MESSAGE_TYPE_ANNOUNCEMENT = "announcement"

MESSAGE_TYPES = (
    MESSAGE_TYPE_GENERAL,
    MESSAGE_TYPE_BEHAVIOR_REPORT,
    MESSAGE_TYPE_PROGRESS_REPORT,
    MESSAGE_TYPE_ANNOUNCEMENT,
)

MESSAGE_PRIORITY_HIGH = "high"
MESSAGE_PRIORITY_NORMAL = "normal"
MESSAGE_PRIORITY_LOW = "low"

MESSAGE_PRIORITIES = (
    MESSAGE_PRIORITY_HIGH,
    MESSAGE_PRIORITY_NORMAL,
    MESSAGE_PRIORITY_LOW,
)


@dataclass(frozen=True)
class Message:
    """Row of the message log.

    Messages are immutable once stored; only ``is_read``/``read_at`` and the
    soft-delete marker ``deleted_at`` change over time, and every change
    produces a new instance.
    """

    id: str | None
    sender_id: str
    recipient_id: str
    content: str
    message_type: str = MESSAGE_TYPE_GENERAL
    priority: str = MESSAGE_PRIORITY_NORMAL
    subject: str | None = None
    related_entity_id: str | None = None
    is_read: bool = False
    created_at: datetime | None = None
    read_at: datetime | None = None
    deleted_at: datetime | None = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def sort_key(self) -> tuple[datetime, str]:
        """Total order used to pick the latest message of a thread."""

        return (self.created_at or _EPOCH_FLOOR, self.id or "")

    def involves(self, user_id: str) -> bool:
        return user_id in (self.sender_id, self.recipient_id)

    def counterpart_of(self, user_id: str) -> str:
        """Return the participant on the other side of ``user_id``."""

        if self.sender_id == user_id:
            return self.recipient_id
        return self.sender_id

    def is_unread_for(self, user_id: str) -> bool:
        return self.recipient_id == user_id and not self.is_read


__all__ = [
    "Message",
    "MESSAGE_TYPE_GENERAL",
    "MESSAGE_TYPE_BEHAVIOR_REPORT",
    "MESSAGE_TYPE_PROGRESS_REPORT",
    "MESSAGE_TYPE_ANNOUNCEMENT",
    "MESSAGE_TYPES",
    "MESSAGE_PRIORITY_HIGH",
    "MESSAGE_PRIORITY_NORMAL",
    "MESSAGE_PRIORITY_LOW",
    "MESSAGE_PRIORITIES",
]

"""Change notifications emitted by the message log."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

FEED_EVENT_INSERT = "insert"
FEED_EVENT_UPDATE = "update"
FEED_EVENT_DELETE = "delete"

FEED_TABLE_MESSAGES = "messages"
FEED_TABLE_NOTIFICATIONS = "notifications"


@dataclass(frozen=True)
class FeedEvent:
    """A single row change delivered by the change feed.

    ``row`` carries the domain entity as it looked after the change (for
    deletions, as it looked right before it disappeared).
    """

    event_id: str
    event_type: str
    table: str
    row: Any


__all__ = [
    "FeedEvent",
    "FEED_EVENT_INSERT",
    "FEED_EVENT_UPDATE",
    "FEED_EVENT_DELETE",
    "FEED_TABLE_MESSAGES",
    "FEED_TABLE_NOTIFICATIONS",
]

"""Exceptions shared by the messaging core."""

from __future__ import annotations


class MessagingError(Exception):
    """Base class for errors raised by the messaging core."""


class ValidationError(MessagingError, ValueError):
    """A command carried malformed input and was rejected before any write."""


class MessageNotFoundError(MessagingError, LookupError):
    """The requested message does not exist or was deleted."""


class NotificationNotFoundError(MessagingError, LookupError):
    """The requested notification does not exist for the acting user."""


class TransientIOError(MessagingError):
    """The message log or the change feed is temporarily unavailable."""


class FeedClosedError(MessagingError):
    """The change feed ended and will not deliver further events."""


class DuplicateNotificationError(MessagingError):
    """A notification for the same ``(user_id, source_event_id)`` already exists."""


class ConsistencyViolation(MessagingError):
    """Derived state disagreed with the feed and had to be corrected.

    Never propagated to callers: the offending value is clamped and the
    violation is logged.
    """


__all__ = [
    "MessagingError",
    "ValidationError",
    "MessageNotFoundError",
    "NotificationNotFoundError",
    "TransientIOError",
    "FeedClosedError",
    "DuplicateNotificationError",
    "ConsistencyViolation",
]

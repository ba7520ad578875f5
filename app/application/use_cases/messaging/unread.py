"""Per-conversation unread counters kept consistent with message read flags."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from app.domain.entities import Conversation, ConversationKey, Message
from app.domain.errors import ConsistencyViolation

from .aggregation import ConversationBook

logger = logging.getLogger(__name__)


def unread_count(messages: Iterable[Message], viewer_id: str) -> int:
    """Number of messages addressed to ``viewer_id`` that are still unread."""

    return sum(1 for message in messages if message.is_unread_for(viewer_id))


def total_unread(conversations: Iterable[Conversation]) -> int:
    return sum(conversation.unread_count for conversation in conversations)


class UnreadTracker:
    """Incrementally maintained unread counters for a single viewer.

    Counters never go below zero: a decrement that would do so is clamped
    and reported as a :class:`ConsistencyViolation` in the logs.
    """

    def __init__(self, viewer_id: str) -> None:
        self.viewer_id = viewer_id
        self._counts: dict[ConversationKey, int] = {}
        self.violations = 0

    def count(self, key: ConversationKey) -> int:
        return self._counts.get(key, 0)

    @property
    def total(self) -> int:
        return sum(self._counts.values())

    def snapshot(self) -> dict[ConversationKey, int]:
        return dict(self._counts)

    def reset(self, book: ConversationBook) -> None:
        """Recompute every counter from the rows held in ``book``."""

        self._counts = {}
        for thread in book:
            self.recompute(book, thread.key)

    def recompute(self, book: ConversationBook, key: ConversationKey) -> int:
        thread = book.thread(key)
        if thread is None:
            self._counts.pop(key, None)
            return 0
        value = unread_count(thread.values(), self.viewer_id)
        if value:
            self._counts[key] = value
        else:
            self._counts.pop(key, None)
        return value

    def on_insert(self, key: ConversationKey, message: Message) -> bool:
        if message.is_unread_for(self.viewer_id):
            self._counts[key] = self.count(key) + 1
            return True
        return False

    def on_update(self, key: ConversationKey, previous: Message, current: Message) -> bool:
        was_unread = previous.is_unread_for(self.viewer_id)
        is_unread = current.is_unread_for(self.viewer_id)
        if was_unread and not is_unread:
            return self._decrement(key)
        if is_unread and not was_unread:
            self._counts[key] = self.count(key) + 1
            return True
        return False

    def on_delete(self, key: ConversationKey, message: Message) -> bool:
        if message.is_unread_for(self.viewer_id):
            return self._decrement(key)
        return False

    def forget(self, key: ConversationKey) -> None:
        self._counts.pop(key, None)

    def mark_all_read(self, keys: Iterable[ConversationKey] | None = None) -> bool:
        """Zero the counters of ``keys`` (all of them when omitted) in one batch."""

        before = self.total
        if keys is None:
            self._counts = {}
        else:
            for key in keys:
                self._counts.pop(key, None)
        return self.total != before

    def clear(self) -> None:
        self._counts = {}

    def _decrement(self, key: ConversationKey) -> bool:
        current = self.count(key)
        if current <= 0:
            self.violations += 1
            violation = ConsistencyViolation(
                f"Unread counter of {key.conversation_id} for {self.viewer_id} would become negative"
            )
            logger.warning("%s; clamped to 0", violation)
            self._counts.pop(key, None)
            return False
        if current == 1:
            self._counts.pop(key, None)
        else:
            self._counts[key] = current - 1
        return True


__all__ = ["UnreadTracker", "total_unread", "unread_count"]

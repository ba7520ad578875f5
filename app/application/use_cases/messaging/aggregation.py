"""Fold message log rows into conversation threads."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping

from app.domain.entities import Conversation, ConversationKey, Message

logger = logging.getLogger(__name__)


def is_well_formed(message: Message) -> bool:
    """Return ``True`` when ``message`` can be placed in a conversation."""

    return bool(
        message.id
        and message.sender_id
        and message.recipient_id
        and message.sender_id != message.recipient_id
    )


class ConversationThread:
    """Members of one conversation with the newest and oldest rows cached."""

    def __init__(self, key: ConversationKey) -> None:
        self.key = key
        self._messages: dict[str, Message] = {}
        self._last: Message | None = None
        self._first: Message | None = None

    def __len__(self) -> int:
        return len(self._messages)

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._messages

    def get(self, message_id: str) -> Message | None:
        return self._messages.get(message_id)

    def messages(self) -> list[Message]:
        """Members in ascending ``(created_at, id)`` order."""

        return sorted(self._messages.values(), key=lambda message: message.sort_key)

    def values(self) -> Iterable[Message]:
        return self._messages.values()

    @property
    def last_message(self) -> Message | None:
        return self._last

    @property
    def first_message(self) -> Message | None:
        return self._first

    def put(self, message: Message) -> Message | None:
        """Store ``message`` and return the row it replaced, if any."""

        previous = self._messages.get(message.id)
        self._messages[message.id] = message
        if previous is not None and (previous is self._last or previous is self._first):
            self._recompute()
            return previous
        if self._last is None or message.sort_key > self._last.sort_key:
            self._last = message
        if self._first is None or message.sort_key < self._first.sort_key:
            self._first = message
        return previous

    def remove(self, message_id: str) -> Message | None:
        removed = self._messages.pop(message_id, None)
        if removed is not None and (removed is self._last or removed is self._first):
            self._recompute()
        return removed

    def _recompute(self) -> None:
        if not self._messages:
            self._last = self._first = None
            return
        self._last = max(self._messages.values(), key=lambda message: message.sort_key)
        self._first = min(self._messages.values(), key=lambda message: message.sort_key)

    def to_conversation(self, unread_count: int) -> Conversation:
        if self._last is None or self._first is None:
            raise ValueError("Conversation without messages cannot be materialized")
        return Conversation(
            id=self.key.conversation_id,
            key=self.key,
            participant_ids=self.key.participant_ids,
            related_entity_id=self.key.related_entity_id,
            last_message=self._last,
            unread_count=max(unread_count, 0),
            message_count=len(self._messages),
            created_at=self._first.created_at,
            updated_at=self._last.created_at,
        )


class ConversationBook:
    """All threads visible to one viewer, indexed by key and by message id."""

    def __init__(self, viewer_id: str) -> None:
        self.viewer_id = viewer_id
        self._threads: dict[ConversationKey, ConversationThread] = {}
        self._index: dict[str, ConversationKey] = {}

    def __len__(self) -> int:
        return len(self._index)

    def __iter__(self) -> Iterator[ConversationThread]:
        return iter(self._threads.values())

    def keys(self) -> list[ConversationKey]:
        return list(self._threads)

    def thread(self, key: ConversationKey) -> ConversationThread | None:
        return self._threads.get(key)

    def thread_by_id(self, conversation_id: str) -> ConversationThread | None:
        for key, thread in self._threads.items():
            if key.conversation_id == conversation_id:
                return thread
        return None

    def get(self, message_id: str) -> Message | None:
        key = self._index.get(message_id)
        if key is None:
            return None
        return self._threads[key].get(message_id)

    def key_of(self, message_id: str) -> ConversationKey | None:
        return self._index.get(message_id)

    def put(self, message: Message) -> tuple[ConversationKey, Message | None]:
        """Insert or replace ``message``; returns its key and the replaced row."""

        key = ConversationKey.for_message(message)
        previous_key = self._index.get(message.id)
        if previous_key is not None and previous_key != key:
            # Participants or the related entity never change for a stored
            # row, but a feed anomaly must not leave the row in two threads.
            logger.warning("Message %s moved between conversations", message.id)
            previous = self.remove(message.id)
            self._place(key, message)
            return key, previous
        previous = self._place(key, message)
        return key, previous

    def _place(self, key: ConversationKey, message: Message) -> Message | None:
        thread = self._threads.get(key)
        if thread is None:
            thread = self._threads[key] = ConversationThread(key)
        self._index[message.id] = key
        return thread.put(message)

    def remove(self, message_id: str) -> Message | None:
        key = self._index.pop(message_id, None)
        if key is None:
            return None
        thread = self._threads[key]
        removed = thread.remove(message_id)
        if not len(thread):
            del self._threads[key]
        return removed

    def clear(self) -> None:
        self._threads.clear()
        self._index.clear()


def sort_conversations(conversations: Iterable[Conversation]) -> list[Conversation]:
    """Order conversations by ``updated_at`` descending, newest first."""

    return sorted(
        conversations,
        key=lambda conversation: conversation.last_message.sort_key,
        reverse=True,
    )


class ConversationAggregator:
    """Group messages of a viewer into :class:`Conversation` records.

    Rows that cannot belong to a thread (missing participants, a sender
    messaging themselves, or rows of other users) are skipped and counted
    in :attr:`dropped`.
    """

    def __init__(self) -> None:
        self.dropped = 0

    def accepts(self, viewer_id: str, message: Message) -> bool:
        if not is_well_formed(message):
            self.dropped += 1
            logger.warning("Dropping malformed message %r from aggregation", message.id)
            return False
        if not message.involves(viewer_id) or message.is_deleted:
            self.dropped += 1
            logger.debug("Message %s is not visible to %s", message.id, viewer_id)
            return False
        return True

    def build_book(self, viewer_id: str, messages: Iterable[Message]) -> ConversationBook:
        book = ConversationBook(viewer_id)
        for message in messages:
            if self.accepts(viewer_id, message):
                book.put(message)
        return book

    def aggregate(
        self,
        viewer_id: str,
        messages: Iterable[Message],
        *,
        unread_counts: Mapping[ConversationKey, int] | None = None,
    ) -> list[Conversation]:
        """Return the conversations containing ``messages`` newest first.

        Unread counts are derived from the read flags unless
        ``unread_counts`` supplies them.
        """

        book = self.build_book(viewer_id, messages)
        conversations = []
        for thread in book:
            if unread_counts is not None:
                unread = unread_counts.get(thread.key, 0)
            else:
                unread = sum(1 for message in thread.values() if message.is_unread_for(viewer_id))
            conversations.append(thread.to_conversation(unread))
        return sort_conversations(conversations)


def aggregate_conversations(viewer_id: str, messages: Iterable[Message]) -> list[Conversation]:
    """Shortcut for a one-off :meth:`ConversationAggregator.aggregate` call."""

    return ConversationAggregator().aggregate(viewer_id, messages)


__all__ = [
    "ConversationAggregator",
    "ConversationBook",
    "ConversationThread",
    "aggregate_conversations",
    "is_well_formed",
    "sort_conversations",
]

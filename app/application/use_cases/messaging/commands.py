"""Presentation Layer commands over the message log.

Every command talks to the repository synchronously. When it succeeds the
resulting rows are also handed to ``on_change`` so the acting user's live
view can apply them before the change feed echoes them back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from app.config import get_settings
from app.domain.entities import (
    FEED_EVENT_DELETE,
    FEED_EVENT_INSERT,
    FEED_EVENT_UPDATE,
    Conversation,
    ConversationKey,
    Message,
)
from app.domain.errors import MessageNotFoundError, ValidationError
from app.infrastructure.repositories import MessageQuery, MessageRepository

from .aggregation import ConversationAggregator
from .changes import CHANGE_BULK_READ, ChangeListener, OptimisticChange
from .search import (
    ConversationFilters,
    Page,
    PageRequest,
    SearchFilters,
    filter_conversations,
    to_message_query,
)
from .validators import validate_outgoing_message

logger = logging.getLogger(__name__)

BOX_INBOX = "inbox"
BOX_SENT = "sent"
BOX_ALL = "all"
MESSAGE_BOXES = (BOX_INBOX, BOX_SENT, BOX_ALL)

SEARCH_RESULT_LIMIT = 50


@dataclass(frozen=True)
class ReadScope:
    """Optional restriction of a "mark all as read" batch."""

    related_entity_id: str | None = None
    counterpart_id: str | None = None
    conversation_id: str | None = None

    @property
    def is_unbounded(self) -> bool:
        return (
            self.related_entity_id is None
            and self.counterpart_id is None
            and self.conversation_id is None
        )


def _notify(on_change: ChangeListener | None, user_id: str, change: OptimisticChange) -> None:
    if on_change is not None:
        on_change(user_id, change)


def send_message(
    session: Session,
    *,
    sender_id: str,
    recipient_id: str | None,
    content: str | None,
    subject: str | None = None,
    message_type: str | None = None,
    related_entity_id: str | None = None,
    priority: str | None = None,
    on_change: ChangeListener | None = None,
) -> Message:
    """Validate and store a new message."""

    outgoing = validate_outgoing_message(
        sender_id=sender_id,
        recipient_id=recipient_id,
        content=content,
        subject=subject,
        message_type=message_type,
        related_entity_id=related_entity_id,
        priority=priority,
    )
    stored = MessageRepository(session).insert(
        Message(
            id=None,
            sender_id=outgoing.sender_id,
            recipient_id=outgoing.recipient_id,
            content=outgoing.content,
            message_type=outgoing.message_type,
            priority=outgoing.priority,
            subject=outgoing.subject,
            related_entity_id=outgoing.related_entity_id,
        )
    )
    logger.info("Message %s sent from %s to %s", stored.id, stored.sender_id, stored.recipient_id)
    _notify(on_change, sender_id, OptimisticChange(FEED_EVENT_INSERT, (stored,)))
    return stored


def mark_message_read(
    session: Session,
    *,
    user_id: str,
    message_id: str,
    is_read: bool = True,
    on_change: ChangeListener | None = None,
) -> Message:
    """Set the read flag of a message addressed to ``user_id``."""

    repository = MessageRepository(session)
    message = repository.get(message_id)
    if message is None:
        raise MessageNotFoundError("Message not found")
    if message.recipient_id != user_id:
        raise PermissionError("Only the recipient can change the read state of a message")
    if message.is_read == is_read:
        return message
    updated = repository.update(message_id, {"is_read": is_read})
    _notify(on_change, user_id, OptimisticChange(FEED_EVENT_UPDATE, (updated,)))
    return updated


def mark_all_messages_read(
    session: Session,
    *,
    user_id: str,
    scope: ReadScope | None = None,
    on_change: ChangeListener | None = None,
) -> int:
    """Mark every unread message addressed to ``user_id`` (within ``scope``) as read."""

    scope = scope or ReadScope()
    repository = MessageRepository(session)
    unread, _ = repository.query(
        MessageQuery(
            recipient_id=user_id,
            sender_id=scope.counterpart_id,
            related_entity_id=scope.related_entity_id,
            is_read=False,
        ),
        descending=False,
    )
    if scope.conversation_id is not None:
        unread = [
            message
            for message in unread
            if ConversationKey.for_message(message).conversation_id == scope.conversation_id
        ]
    if not unread:
        return 0

    updated = repository.bulk_update([message.id for message in unread], {"is_read": True})
    keys = None
    if not scope.is_unbounded:
        keys = tuple(dict.fromkeys(ConversationKey.for_message(message) for message in updated))
    logger.info("Marked %d message(s) of %s as read", len(updated), user_id)
    _notify(on_change, user_id, OptimisticChange(CHANGE_BULK_READ, tuple(updated), keys))
    return len(updated)


def delete_message(
    session: Session,
    *,
    user_id: str,
    message_id: str,
    on_change: ChangeListener | None = None,
) -> Message:
    """Soft delete a message the user sent or received."""

    repository = MessageRepository(session)
    message = repository.get(message_id)
    if message is None:
        raise MessageNotFoundError("Message not found")
    if not message.involves(user_id):
        raise PermissionError("Only the sender or the recipient can delete a message")
    deleted = repository.delete(message_id)
    _notify(on_change, user_id, OptimisticChange(FEED_EVENT_DELETE, (deleted,)))
    return deleted


def list_messages(
    session: Session,
    *,
    user_id: str,
    box: str = BOX_INBOX,
    filters: SearchFilters | None = None,
    page_request: PageRequest | None = None,
) -> Page[Message]:
    """Filtered, paginated view of the user's inbox, sent box or both."""

    if box not in MESSAGE_BOXES:
        raise ValidationError(f"Unknown message box '{box}'")
    filters = filters or SearchFilters()
    page_request = page_request or PageRequest()
    if box == BOX_INBOX:
        query = to_message_query(filters, recipient_id=user_id)
    elif box == BOX_SENT:
        query = to_message_query(filters, sender_id=user_id)
    else:
        query = to_message_query(filters, participant_id=user_id)
    rows, total = MessageRepository(session).query(
        query, offset=page_request.offset, limit=page_request.limit
    )
    return Page(items=list(rows), page=page_request.page, limit=page_request.limit, total=total)


def search_messages_for_user(session: Session, *, user_id: str, query: str | None) -> list[Message]:
    """Free text search over everything the user sent or received."""

    text = (query or "").strip()
    if not text:
        return []
    rows, _ = MessageRepository(session).query(
        MessageQuery(participant_id=user_id, text=text), limit=SEARCH_RESULT_LIMIT
    )
    return list(rows)


def load_conversation_messages(session: Session, user_id: str) -> list[Message]:
    """Cold load of the rows aggregated into a user's conversations."""

    limit = get_settings().cold_load_limit
    return list(MessageRepository(session).list_for_participant(user_id, limit=limit))


def list_conversations(
    session: Session,
    *,
    user_id: str,
    filters: ConversationFilters | None = None,
) -> list[Conversation]:
    conversations = ConversationAggregator().aggregate(
        user_id, load_conversation_messages(session, user_id)
    )
    return filter_conversations(conversations, filters or ConversationFilters(), user_id)


def get_conversation_messages(session: Session, *, user_id: str, conversation_id: str) -> list[Message]:
    """Members of one conversation of ``user_id`` in ascending order."""

    book = ConversationAggregator().build_book(user_id, load_conversation_messages(session, user_id))
    thread = book.thread_by_id(conversation_id)
    if thread is None:
        raise MessageNotFoundError("Conversation not found")
    return thread.messages()


__all__ = [
    "BOX_ALL",
    "BOX_INBOX",
    "BOX_SENT",
    "MESSAGE_BOXES",
    "ReadScope",
    "delete_message",
    "get_conversation_messages",
    "list_conversations",
    "list_messages",
    "load_conversation_messages",
    "mark_all_messages_read",
    "mark_message_read",
    "search_messages_for_user",
    "send_message",
]

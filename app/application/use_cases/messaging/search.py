"""Filtering and offset pagination over messages and conversations."""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Generic, TypeVar

from app.domain.entities import MESSAGE_TYPES, Conversation, Message
from app.domain.errors import ValidationError
from app.infrastructure.repositories import MessageQuery
from app.utils import ensure_app_timezone

T = TypeVar("T")

SORT_BY_DATE = "date"
SORT_BY_UNREAD = "unread"
CONVERSATION_SORTS = (SORT_BY_DATE, SORT_BY_UNREAD)


@dataclass(frozen=True)
class SearchFilters:
    """Message filters combined with logical AND."""

    query: str | None = None
    is_read: bool | None = None
    message_type: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    student_id: str | None = None

    def __post_init__(self) -> None:
        if self.message_type is not None and self.message_type not in MESSAGE_TYPES:
            raise ValidationError(f"Unknown message type '{self.message_type}'")
        date_from = ensure_app_timezone(self.date_from)
        date_to = ensure_app_timezone(self.date_to)
        if date_from is not None and date_to is not None and date_from > date_to:
            raise ValidationError("date_from must not be later than date_to")

    @property
    def text(self) -> str | None:
        if self.query is None:
            return None
        stripped = self.query.strip()
        return stripped or None


@dataclass(frozen=True)
class PageRequest:
    page: int = 1
    limit: int = 20

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValidationError("page must be greater than or equal to 1")
        if self.limit < 1:
            raise ValidationError("limit must be greater than or equal to 1")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass(frozen=True)
class Page(Generic[T]):
    items: list[T]
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


@dataclass(frozen=True)
class ConversationFilters:
    query: str | None = None
    unread_only: bool = False
    related_entity_id: str | None = None
    sort_by: str = SORT_BY_DATE

    def __post_init__(self) -> None:
        if self.sort_by not in CONVERSATION_SORTS:
            raise ValidationError(f"Unknown conversation sort '{self.sort_by}'")


def matches(message: Message, filters: SearchFilters) -> bool:
    """Return ``True`` when ``message`` satisfies every populated filter."""

    text = filters.text
    if text is not None:
        needle = text.lower()
        haystacks = (message.content or "", message.subject or "")
        if not any(needle in haystack.lower() for haystack in haystacks):
            return False
    if filters.is_read is not None and message.is_read != filters.is_read:
        return False
    if filters.message_type is not None and message.message_type != filters.message_type:
        return False
    if filters.student_id is not None and message.related_entity_id != filters.student_id:
        return False
    created_at = ensure_app_timezone(message.created_at)
    date_from = ensure_app_timezone(filters.date_from)
    date_to = ensure_app_timezone(filters.date_to)
    if date_from is not None and (created_at is None or created_at < date_from):
        return False
    if date_to is not None and (created_at is None or created_at > date_to):
        return False
    return True


def filter_messages(messages: Iterable[Message], filters: SearchFilters) -> list[Message]:
    """Matching messages newest first; ties are broken by id for determinism."""

    selected = [message for message in messages if not message.is_deleted and matches(message, filters)]
    selected.sort(key=lambda message: message.sort_key, reverse=True)
    return selected


def paginate(items: Sequence[T], page_request: PageRequest) -> Page[T]:
    start = page_request.offset
    return Page(
        items=list(items[start : start + page_request.limit]),
        page=page_request.page,
        limit=page_request.limit,
        total=len(items),
    )


def search_messages(
    messages: Iterable[Message], filters: SearchFilters, page_request: PageRequest
) -> Page[Message]:
    """Filter an in-memory snapshot and return the requested page."""

    return paginate(filter_messages(messages, filters), page_request)


def to_message_query(filters: SearchFilters, **scope: str | None) -> MessageQuery:
    """Translate ``filters`` into the repository query, adding ``scope`` ids."""

    return MessageQuery(
        participant_id=scope.get("participant_id"),
        sender_id=scope.get("sender_id"),
        recipient_id=scope.get("recipient_id"),
        related_entity_id=filters.student_id,
        message_type=filters.message_type,
        is_read=filters.is_read,
        created_from=filters.date_from,
        created_to=filters.date_to,
        text=filters.text,
    )


def filter_conversations(
    conversations: Iterable[Conversation], filters: ConversationFilters, viewer_id: str
) -> list[Conversation]:
    selected = []
    needle = (filters.query or "").strip().lower()
    for conversation in conversations:
        if filters.unread_only and conversation.unread_count <= 0:
            continue
        if (
            filters.related_entity_id is not None
            and conversation.related_entity_id != filters.related_entity_id
        ):
            continue
        if needle:
            counterpart = conversation.key.counterpart_of(viewer_id).lower()
            content = (conversation.last_message.content or "").lower()
            entity = (conversation.related_entity_id or "").lower()
            if needle not in counterpart and needle not in content and needle not in entity:
                continue
        selected.append(conversation)
    selected.sort(key=lambda conversation: conversation.last_message.sort_key, reverse=True)
    if filters.sort_by == SORT_BY_UNREAD:
        selected.sort(key=lambda conversation: conversation.unread_count, reverse=True)
    return selected


__all__ = [
    "ConversationFilters",
    "Page",
    "PageRequest",
    "SearchFilters",
    "SORT_BY_DATE",
    "SORT_BY_UNREAD",
    "filter_conversations",
    "filter_messages",
    "matches",
    "paginate",
    "search_messages",
    "to_message_query",
]

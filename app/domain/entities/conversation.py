"""Domain objects describing derived conversation threads."""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from datetime import datetime

from .message import Message

GENERAL_THREAD = "general"


@dataclass(frozen=True)
class ConversationKey:
    """Identity of a thread: an unordered participant pair plus a related entity.

    ``related_entity_id`` of ``None`` denotes the general thread between the
    pair. The key is compared structurally, so a missing entity never
    collides with an entity whose identifier happens to be ``"general"``.
    """

    participant_ids: tuple[str, str]
    related_entity_id: str | None = None

    @classmethod
    def for_message(cls, message: Message) -> "ConversationKey":
        first, second = sorted((message.sender_id, message.recipient_id))
        return cls(participant_ids=(first, second), related_entity_id=message.related_entity_id)

    @property
    def conversation_id(self) -> str:
        """Stable opaque identifier derived from the key."""

        scope = (
            ["entity", self.related_entity_id]
            if self.related_entity_id is not None
            else [GENERAL_THREAD]
        )
        canonical = json.dumps(["direct", list(self.participant_ids), scope], separators=(",", ":"))
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:32]

    def counterpart_of(self, user_id: str) -> str:
        first, second = self.participant_ids
        return second if first == user_id else first


@dataclass(frozen=True)
class Conversation:
    """View over the messages sharing a :class:`ConversationKey`."""

    id: str
    key: ConversationKey
    participant_ids: tuple[str, str]
    related_entity_id: str | None
    last_message: Message
    unread_count: int
    message_count: int
    created_at: datetime | None
    updated_at: datetime | None


__all__ = ["Conversation", "ConversationKey", "GENERAL_THREAD"]

"""Schemas for conversation endpoints."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from .message import MessageRead


class ConversationRead(BaseModel):
    id: str
    participant_ids: list[str]
    related_entity_id: str | None = None
    last_message: MessageRead
    unread_count: int
    message_count: int
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


__all__ = ["ConversationRead"]

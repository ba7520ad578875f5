"""Pydantic models describing message payloads."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class MessageCreate(BaseModel):
    """Payload used to send a message."""

    recipient_id: str
    content: str
    subject: str | None = None
    message_type: str | None = None
    related_entity_id: str | None = None
    priority: str | None = None


class MessageReadStateUpdate(BaseModel):
    is_read: bool = True


class MarkAllReadRequest(BaseModel):
    """Optional scope of a "mark all as read" request."""

    related_entity_id: str | None = None
    counterpart_id: str | None = None
    conversation_id: str | None = None

    model_config = ConfigDict(extra="forbid")


class MarkAllReadResponse(BaseModel):
    updated: int


class MessageRead(BaseModel):
    """Representation of a message delivered to the client."""

    id: str
    sender_id: str
    recipient_id: str
    related_entity_id: str | None = None
    subject: str | None = None
    content: str
    message_type: str
    priority: str
    is_read: bool
    created_at: datetime | None = None
    read_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class MessagePage(BaseModel):
    items: list[MessageRead] = Field(default_factory=list)
    page: int
    limit: int
    total: int
    total_pages: int


__all__ = [
    "MarkAllReadRequest",
    "MarkAllReadResponse",
    "MessageCreate",
    "MessagePage",
    "MessageRead",
    "MessageReadStateUpdate",
]

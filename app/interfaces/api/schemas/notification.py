"""Pydantic models describing notification payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class NotificationRead(BaseModel):
    """Representation of a notification delivered to the client."""

    id: str
    user_id: str
    type: str
    title: str
    content: str
    related_data: dict[str, Any] = Field(default_factory=dict)
    urgency: str
    is_read: bool
    created_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class NotificationPage(BaseModel):
    items: list[NotificationRead] = Field(default_factory=list)
    page: int
    limit: int
    total: int
    total_pages: int
    unread_count: int


class NotificationBulkResponse(BaseModel):
    updated: int


class GamificationEventCreate(BaseModel):
    """Insert observed on the gamification log."""

    source_event_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    kind: str
    data: dict[str, Any] = Field(default_factory=dict)


class GamificationEventResponse(BaseModel):
    created: bool
    notification: NotificationRead


__all__ = [
    "GamificationEventCreate",
    "GamificationEventResponse",
    "NotificationBulkResponse",
    "NotificationPage",
    "NotificationRead",
]

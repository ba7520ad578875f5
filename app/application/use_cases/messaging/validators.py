"""Validation helpers for messaging commands."""

from __future__ import annotations

from dataclasses import dataclass

from app.config import get_settings
from app.domain.entities import (
    MESSAGE_PRIORITIES,
    MESSAGE_PRIORITY_NORMAL,
    MESSAGE_TYPE_GENERAL,
    MESSAGE_TYPES,
)
from app.domain.errors import ValidationError


@dataclass(frozen=True)
class OutgoingMessage:
    """Normalized ``sendMessage`` input."""

    sender_id: str
    recipient_id: str
    content: str
    subject: str | None
    message_type: str
    related_entity_id: str | None
    priority: str


def _clean_optional(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def validate_outgoing_message(
    *,
    sender_id: str | None,
    recipient_id: str | None,
    content: str | None,
    subject: str | None = None,
    message_type: str | None = None,
    related_entity_id: str | None = None,
    priority: str | None = None,
) -> OutgoingMessage:
    """Return the normalized message or raise :class:`ValidationError`."""

    settings = get_settings()
    sender = (sender_id or "").strip()
    recipient = (recipient_id or "").strip()
    if not sender:
        raise ValidationError("A sender is required")
    if not recipient:
        raise ValidationError("Please select a recipient")
    if sender == recipient:
        raise ValidationError("Messages cannot be sent to yourself")

    body = (content or "").strip()
    if not body:
        raise ValidationError("Message content is required")
    if len(body) > settings.message_max_length:
        raise ValidationError(
            f"Message must be less than {settings.message_max_length} characters"
        )

    clean_subject = _clean_optional(subject)
    if clean_subject is not None and len(clean_subject) > settings.subject_max_length:
        raise ValidationError(
            f"Subject must be less than {settings.subject_max_length} characters"
        )

    kind = message_type or MESSAGE_TYPE_GENERAL
    if kind not in MESSAGE_TYPES:
        raise ValidationError(f"Unknown message type '{kind}'")

    level = priority or MESSAGE_PRIORITY_NORMAL
    if level not in MESSAGE_PRIORITIES:
        raise ValidationError(f"Unknown priority '{level}'")

    return OutgoingMessage(
        sender_id=sender,
        recipient_id=recipient,
        content=body,
        subject=clean_subject,
        message_type=kind,
        related_entity_id=_clean_optional(related_entity_id),
        priority=level,
    )


__all__ = ["OutgoingMessage", "validate_outgoing_message"]

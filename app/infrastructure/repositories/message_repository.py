"""Persistence helpers for the message log."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import or_
from sqlalchemy.orm import Query, Session

from app.domain.entities import Message
from app.domain.errors import MessageNotFoundError, ValidationError
from app.infrastructure.database import translate_transient_errors
from app.infrastructure.models import MessageModel
from app.utils import (
    ensure_app_naive_datetime,
    ensure_app_timezone,
    now_in_app_timezone,
)

_MUTABLE_FIELDS = frozenset({"is_read", "read_at"})


@dataclass(frozen=True)
class MessageQuery:
    """Filter applied by :meth:`MessageRepository.query`.

    Every populated field narrows the result (logical AND).
    """

    participant_id: str | None = None
    sender_id: str | None = None
    recipient_id: str | None = None
    related_entity_id: str | None = None
    message_type: str | None = None
    is_read: bool | None = None
    created_from: datetime | None = None
    created_to: datetime | None = None
    text: str | None = None
    message_ids: tuple[str, ...] | None = None


class MessageRepository:
    """Typed access to :class:`Message` rows.

    Every write goes through the ORM unit of work so the change feed hooks
    observe each affected row.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def insert(self, message: Message) -> Message:
        model = MessageModel()
        model.id = message.id or uuid4().hex
        model.sender_id = message.sender_id
        model.recipient_id = message.recipient_id
        model.related_entity_id = message.related_entity_id
        model.subject = message.subject
        model.content = message.content
        model.message_type = message.message_type
        model.priority = message.priority
        model.is_read = message.is_read
        model.created_at = ensure_app_naive_datetime(
            message.created_at or now_in_app_timezone()
        )
        model.read_at = ensure_app_naive_datetime(message.read_at)
        with translate_transient_errors("insert"):
            self.session.add(model)
            self.session.commit()
            self.session.refresh(model)
        return self.to_entity(model)

    def get(self, message_id: str, *, include_deleted: bool = False) -> Message | None:
        with translate_transient_errors("get"):
            model = self.session.get(MessageModel, message_id)
        if model is None or (model.deleted_at is not None and not include_deleted):
            return None
        return self.to_entity(model)

    def update(self, message_id: str, patch: Mapping[str, Any]) -> Message:
        """Apply ``patch`` to a single message and return the stored row."""

        changes = self._validate_patch(patch)
        with translate_transient_errors("update"):
            model = self._get_live_model(message_id)
            self._apply_patch(model, changes)
            self.session.commit()
            self.session.refresh(model)
        return self.to_entity(model)

    def bulk_update(self, message_ids: Iterable[str], patch: Mapping[str, Any]) -> list[Message]:
        """Apply ``patch`` to every live message in ``message_ids`` in one commit."""

        ids = list(dict.fromkeys(message_id for message_id in message_ids if message_id))
        if not ids:
            return []
        changes = self._validate_patch(patch)
        with translate_transient_errors("bulk update"):
            models = (
                self.session.query(MessageModel)
                .filter(MessageModel.id.in_(ids), MessageModel.deleted_at.is_(None))
                .all()
            )
            for model in models:
                self._apply_patch(model, changes)
            self.session.commit()
            for model in models:
                self.session.refresh(model)
        return [self.to_entity(model) for model in models]

    def delete(self, message_id: str) -> Message:
        """Soft delete a message; it disappears from every query."""

        with translate_transient_errors("delete"):
            model = self._get_live_model(message_id)
            model.deleted_at = ensure_app_naive_datetime(now_in_app_timezone())
            self.session.commit()
            self.session.refresh(model)
        return self.to_entity(model)

    def query(
        self,
        filters: MessageQuery,
        *,
        descending: bool = True,
        offset: int = 0,
        limit: int | None = None,
    ) -> tuple[list[Message], int]:
        """Return one page of matching messages together with the total count."""

        with translate_transient_errors("query"):
            query = self._filtered(filters)
            total = query.count()
            if descending:
                query = query.order_by(MessageModel.created_at.desc(), MessageModel.id.desc())
            else:
                query = query.order_by(MessageModel.created_at.asc(), MessageModel.id.asc())
            if offset:
                query = query.offset(offset)
            if limit is not None:
                query = query.limit(limit)
            models = query.all()
        return [self.to_entity(model) for model in models], total

    def list_for_participant(self, user_id: str, *, limit: int | None = None) -> Sequence[Message]:
        """Return the newest messages sent or received by ``user_id``."""

        rows, _ = self.query(MessageQuery(participant_id=user_id), limit=limit)
        return rows

    def _filtered(self, filters: MessageQuery) -> Query:
        query = self.session.query(MessageModel).filter(MessageModel.deleted_at.is_(None))
        if filters.participant_id is not None:
            query = query.filter(
                or_(
                    MessageModel.sender_id == filters.participant_id,
                    MessageModel.recipient_id == filters.participant_id,
                )
            )
        if filters.sender_id is not None:
            query = query.filter(MessageModel.sender_id == filters.sender_id)
        if filters.recipient_id is not None:
            query = query.filter(MessageModel.recipient_id == filters.recipient_id)
        if filters.related_entity_id is not None:
            query = query.filter(MessageModel.related_entity_id == filters.related_entity_id)
        if filters.message_type is not None:
            query = query.filter(MessageModel.message_type == filters.message_type)
        if filters.is_read is not None:
            query = query.filter(MessageModel.is_read == filters.is_read)
        if filters.created_from is not None:
            query = query.filter(
                MessageModel.created_at >= ensure_app_naive_datetime(filters.created_from)
            )
        if filters.created_to is not None:
            query = query.filter(
                MessageModel.created_at <= ensure_app_naive_datetime(filters.created_to)
            )
        if filters.text:
            pattern = f"%{_escape_like(filters.text.strip())}%"
            query = query.filter(
                or_(
                    MessageModel.content.ilike(pattern, escape="\\"),
                    MessageModel.subject.ilike(pattern, escape="\\"),
                )
            )
        if filters.message_ids is not None:
            query = query.filter(MessageModel.id.in_(filters.message_ids))
        return query

    def _get_live_model(self, message_id: str) -> MessageModel:
        model = self.session.get(MessageModel, message_id)
        if model is None or model.deleted_at is not None:
            raise MessageNotFoundError(f"Message {message_id} not found")
        return model

    @staticmethod
    def _validate_patch(patch: Mapping[str, Any]) -> dict[str, Any]:
        unknown = set(patch) - _MUTABLE_FIELDS
        if unknown:
            fields = ", ".join(sorted(unknown))
            raise ValidationError(f"Message fields cannot be modified: {fields}")
        changes = dict(patch)
        if "is_read" in changes:
            changes["is_read"] = bool(changes["is_read"])
            if "read_at" not in changes:
                changes["read_at"] = now_in_app_timezone() if changes["is_read"] else None
        return changes

    @staticmethod
    def _apply_patch(model: MessageModel, changes: Mapping[str, Any]) -> None:
        if "is_read" in changes:
            if bool(model.is_read) == changes["is_read"]:
                return
            model.is_read = changes["is_read"]
        if "read_at" in changes:
            model.read_at = ensure_app_naive_datetime(changes["read_at"])

    @staticmethod
    def to_entity(model: MessageModel) -> Message:
        return Message(
            id=model.id,
            sender_id=model.sender_id,
            recipient_id=model.recipient_id,
            content=model.content,
            message_type=model.message_type,
            priority=model.priority,
            subject=model.subject,
            related_entity_id=model.related_entity_id,
            is_read=bool(model.is_read),
            created_at=ensure_app_timezone(model.created_at),
            read_at=ensure_app_timezone(model.read_at),
            deleted_at=ensure_app_timezone(model.deleted_at),
        )


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


__all__ = ["MessageQuery", "MessageRepository"]

"""Persistence helpers for notification entities."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Iterable
from uuid import uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.domain.entities import Notification
from app.domain.errors import DuplicateNotificationError
from app.infrastructure.database import translate_transient_errors
from app.infrastructure.models import NotificationModel
from app.utils import (
    ensure_app_naive_datetime,
    ensure_app_timezone,
    now_in_app_timezone,
)


class NotificationRepository:
    """Provide CRUD operations for :class:`Notification` objects."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def list_for_user(
        self,
        user_id: str,
        *,
        unread_only: bool = False,
        offset: int = 0,
        limit: int | None = 50,
    ) -> tuple[list[Notification], int]:
        with translate_transient_errors("list notifications"):
            query = self.session.query(NotificationModel)
            query = query.filter(NotificationModel.user_id == user_id)
            if unread_only:
                query = query.filter(NotificationModel.is_read == False)  # noqa: E712
            total = query.count()
            query = query.order_by(
                NotificationModel.created_at.desc(), NotificationModel.id.desc()
            )
            if offset:
                query = query.offset(offset)
            if limit is not None:
                query = query.limit(limit)
            models = query.all()
        return [self.to_entity(model) for model in models], total

    def count_unread(self, user_id: str) -> int:
        with translate_transient_errors("count notifications"):
            return (
                self.session.query(NotificationModel)
                .filter(NotificationModel.user_id == user_id)
                .filter(NotificationModel.is_read == False)  # noqa: E712
                .count()
            )

    def get(self, notification_id: str) -> Notification | None:
        with translate_transient_errors("get notification"):
            model = self.session.get(NotificationModel, notification_id)
        if model is None:
            return None
        return self.to_entity(model)

    def get_by_source(self, *, user_id: str, source_event_id: str) -> Notification | None:
        with translate_transient_errors("get notification"):
            model = (
                self.session.query(NotificationModel)
                .filter(NotificationModel.user_id == user_id)
                .filter(NotificationModel.source_event_id == source_event_id)
                .one_or_none()
            )
        if model is None:
            return None
        return self.to_entity(model)

    def create(self, notification: Notification) -> Notification:
        """Persist ``notification``.

        Raises :class:`DuplicateNotificationError` when the dedup key is taken.
        """

        model = NotificationModel()
        model.id = notification.id or uuid4().hex
        model.user_id = notification.user_id
        model.type = notification.type
        model.title = notification.title
        model.content = notification.content
        model.source_event_id = notification.source_event_id
        model.related_data = notification.related_data or {}
        model.urgency = notification.urgency
        model.is_read = notification.is_read
        model.created_at = ensure_app_naive_datetime(
            notification.created_at or now_in_app_timezone()
        )
        with translate_transient_errors("create notification"):
            self.session.add(model)
            try:
                self.session.commit()
            except IntegrityError as exc:
                self.session.rollback()
                raise DuplicateNotificationError(
                    f"Notification for {notification.source_event_id} already exists"
                ) from exc
            self.session.refresh(model)
        return self.to_entity(model)

    def mark_as_read(self, notification_ids: Iterable[str], *, user_id: str) -> int:
        ids = [notification_id for notification_id in notification_ids if notification_id]
        if not ids:
            return 0
        with translate_transient_errors("mark notifications read"):
            models = (
                self.session.query(NotificationModel)
                .filter(
                    NotificationModel.id.in_(ids),
                    NotificationModel.user_id == user_id,
                    NotificationModel.is_read == False,  # noqa: E712
                )
                .all()
            )
            for model in models:
                model.is_read = True
            self.session.commit()
        return len(models)

    def mark_all_as_read(self, user_id: str) -> int:
        with translate_transient_errors("mark notifications read"):
            models = (
                self.session.query(NotificationModel)
                .filter(
                    NotificationModel.user_id == user_id,
                    NotificationModel.is_read == False,  # noqa: E712
                )
                .all()
            )
            for model in models:
                model.is_read = True
            self.session.commit()
        return len(models)

    def delete(self, notification_id: str, *, user_id: str) -> bool:
        with translate_transient_errors("delete notification"):
            model = self.session.get(NotificationModel, notification_id)
            if model is None or model.user_id != user_id:
                return False
            self.session.delete(model)
            self.session.commit()
        return True

    def delete_all_for_user(self, user_id: str) -> int:
        with translate_transient_errors("clear notifications"):
            models: Sequence[NotificationModel] = (
                self.session.query(NotificationModel)
                .filter(NotificationModel.user_id == user_id)
                .all()
            )
            for model in models:
                self.session.delete(model)
            self.session.commit()
        return len(models)

    @staticmethod
    def to_entity(model: NotificationModel) -> Notification:
        return Notification(
            id=model.id,
            user_id=model.user_id,
            type=model.type,
            title=model.title,
            content=model.content,
            source_event_id=model.source_event_id,
            related_data=dict(model.related_data or {}),
            urgency=model.urgency,
            is_read=bool(model.is_read),
            created_at=ensure_app_timezone(model.created_at),
        )


__all__ = ["NotificationRepository"]

"""Notification commands issued by the owning user."""

from __future__ import annotations

from sqlalchemy.orm import Session

from app.application.use_cases.messaging.search import Page, PageRequest
from app.domain.entities import GamificationEvent, Notification
from app.domain.errors import NotificationNotFoundError
from app.infrastructure.repositories import NotificationRepository
from app.infrastructure.notifications import presentation_publisher

from .dispatcher import NotificationSink, notify_gamification_event


def list_notifications(
    session: Session,
    *,
    user_id: str,
    unread_only: bool = False,
    page_request: PageRequest | None = None,
) -> tuple[Page[Notification], int]:
    """Return a page of the user's notifications, newest first, and the unread total."""

    page_request = page_request or PageRequest()
    repository = NotificationRepository(session)
    items, total = repository.list_for_user(
        user_id,
        unread_only=unread_only,
        offset=page_request.offset,
        limit=page_request.limit,
    )
    page = Page(items=items, page=page_request.page, limit=page_request.limit, total=total)
    return page, repository.count_unread(user_id)


def _owned_notification(repository: NotificationRepository, *, user_id: str, notification_id: str) -> Notification:
    notification = repository.get(notification_id)
    if notification is None or notification.user_id != user_id:
        raise NotificationNotFoundError("Notification not found")
    return notification


def mark_notification_read(session: Session, *, user_id: str, notification_id: str) -> Notification:
    repository = NotificationRepository(session)
    notification = _owned_notification(repository, user_id=user_id, notification_id=notification_id)
    if notification.is_read:
        return notification
    repository.mark_as_read([notification_id], user_id=user_id)
    return _owned_notification(repository, user_id=user_id, notification_id=notification_id)


def mark_all_notifications_read(session: Session, *, user_id: str) -> int:
    return NotificationRepository(session).mark_all_as_read(user_id)


def delete_notification(session: Session, *, user_id: str, notification_id: str) -> None:
    if not NotificationRepository(session).delete(notification_id, user_id=user_id):
        raise NotificationNotFoundError("Notification not found")


def clear_all_notifications(session: Session, *, user_id: str) -> int:
    """Delete every notification owned by ``user_id``."""

    return NotificationRepository(session).delete_all_for_user(user_id)


def report_gamification_event(
    session: Session,
    *,
    event: GamificationEvent,
    publisher: NotificationSink = presentation_publisher,
) -> tuple[Notification, bool]:
    """Handle a gamification log insert.

    Returns the stored notification and whether it was created by this
    call (``False`` when the source event had already been delivered).
    """

    created = notify_gamification_event(session, event=event, publisher=publisher)
    if created is not None:
        return created, True
    existing = NotificationRepository(session).get_by_source(
        user_id=event.user_id, source_event_id=event.source_event_id
    )
    if existing is None:  # pragma: no cover - deleted between the two calls
        raise NotificationNotFoundError("Notification not found")
    return existing, False

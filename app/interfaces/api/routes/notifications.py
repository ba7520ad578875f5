"""Endpoints for the notifications owned by the acting user."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from app.application.use_cases.messaging import PageRequest
from app.application.use_cases.notifications import (
    clear_all_notifications as clear_all_notifications_uc,
    delete_notification as delete_notification_uc,
    list_notifications as list_notifications_uc,
    mark_all_notifications_read as mark_all_notifications_read_uc,
    mark_notification_read as mark_notification_read_uc,
    report_gamification_event as report_gamification_event_uc,
)
from app.config import get_settings
from app.domain.entities import GamificationEvent, Notification
from app.infrastructure.database import get_db
from app.interfaces.api.dependencies import get_current_user_id
from app.interfaces.api.routes_helpers import COMMAND_ERRORS, to_http_exception
from app.interfaces.api.schemas import (
    GamificationEventCreate,
    GamificationEventResponse,
    NotificationBulkResponse,
    NotificationPage,
    NotificationRead,
)

router = APIRouter(prefix="/notifications", tags=["notifications"])

settings = get_settings()


def _notification_to_schema(notification: Notification) -> NotificationRead:
    return NotificationRead.model_validate(notification)


@router.get("", response_model=NotificationPage)
def list_notifications(
    unread_only: bool = False,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_limit, ge=1, le=settings.max_page_limit),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> NotificationPage:
    """Return the most recent notifications for the acting user."""

    try:
        result, unread = list_notifications_uc(
            db,
            user_id=user_id,
            unread_only=unread_only,
            page_request=PageRequest(page=page, limit=limit),
        )
    except COMMAND_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return NotificationPage(
        items=[_notification_to_schema(notification) for notification in result.items],
        page=result.page,
        limit=result.limit,
        total=result.total,
        total_pages=result.total_pages,
        unread_count=unread,
    )


@router.patch("/{notification_id}/read", response_model=NotificationRead)
def mark_notification_read(
    notification_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> NotificationRead:
    try:
        notification = mark_notification_read_uc(db, user_id=user_id, notification_id=notification_id)
    except COMMAND_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return _notification_to_schema(notification)


@router.post("/read-all", response_model=NotificationBulkResponse)
def mark_all_notifications_read(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> NotificationBulkResponse:
    try:
        updated = mark_all_notifications_read_uc(db, user_id=user_id)
    except COMMAND_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return NotificationBulkResponse(updated=updated)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_notification(
    notification_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> Response:
    try:
        delete_notification_uc(db, user_id=user_id, notification_id=notification_id)
    except COMMAND_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("", response_model=NotificationBulkResponse)
def clear_all_notifications(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> NotificationBulkResponse:
    """Delete every notification of the acting user."""

    try:
        removed = clear_all_notifications_uc(db, user_id=user_id)
    except COMMAND_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return NotificationBulkResponse(updated=removed)


@router.post("/events", response_model=GamificationEventResponse)
def report_gamification_event(
    event_in: GamificationEventCreate,
    response: Response,
    db: Session = Depends(get_db),
) -> GamificationEventResponse:
    """Hook for gamification log inserts; repeated source events are ignored."""

    event = GamificationEvent(
        source_event_id=event_in.source_event_id,
        user_id=event_in.user_id,
        kind=event_in.kind,
        data=dict(event_in.data),
    )
    try:
        notification, created = report_gamification_event_uc(db, event=event)
    except COMMAND_ERRORS as exc:
        raise to_http_exception(exc) from exc
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return GamificationEventResponse(created=created, notification=_notification_to_schema(notification))

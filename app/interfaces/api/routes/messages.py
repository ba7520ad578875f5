"""Endpoints for sending, reading and deleting messages."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from app.application.realtime.runtime import submit_change
from app.application.use_cases.messaging import (
    PageRequest,
    ReadScope,
    SearchFilters,
    delete_message as delete_message_uc,
    list_messages as list_messages_uc,
    mark_all_messages_read as mark_all_messages_read_uc,
    mark_message_read as mark_message_read_uc,
    search_messages_for_user,
    send_message as send_message_uc,
)
from app.application.use_cases.messaging.commands import BOX_INBOX
from app.config import get_settings
from app.domain.entities import Message
from app.infrastructure.database import get_db
from app.interfaces.api.dependencies import get_current_user_id
from app.interfaces.api.routes_helpers import COMMAND_ERRORS, to_http_exception
from app.interfaces.api.schemas import (
    MarkAllReadRequest,
    MarkAllReadResponse,
    MessageCreate,
    MessagePage,
    MessageRead,
    MessageReadStateUpdate,
)

router = APIRouter(prefix="/messages", tags=["messages"])

settings = get_settings()


def _to_read_model(message: Message) -> MessageRead:
    return MessageRead.model_validate(message)


@router.post("", response_model=MessageRead, status_code=status.HTTP_201_CREATED)
def send_message(
    message_in: MessageCreate,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> MessageRead:
    """Send a message from the acting user."""

    try:
        message = send_message_uc(
            db,
            sender_id=user_id,
            recipient_id=message_in.recipient_id,
            content=message_in.content,
            subject=message_in.subject,
            message_type=message_in.message_type,
            related_entity_id=message_in.related_entity_id,
            priority=message_in.priority,
            on_change=submit_change,
        )
    except COMMAND_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return _to_read_model(message)


@router.get("", response_model=MessagePage)
def list_messages(
    box: str = BOX_INBOX,
    q: str | None = None,
    is_read: bool | None = None,
    message_type: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    student_id: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_limit, ge=1, le=settings.max_page_limit),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> MessagePage:
    """Return a filtered page of the user's messages, newest first."""

    try:
        filters = SearchFilters(
            query=q,
            is_read=is_read,
            message_type=message_type,
            date_from=date_from,
            date_to=date_to,
            student_id=student_id,
        )
        result = list_messages_uc(
            db,
            user_id=user_id,
            box=box,
            filters=filters,
            page_request=PageRequest(page=page, limit=limit),
        )
    except COMMAND_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return MessagePage(
        items=[_to_read_model(message) for message in result.items],
        page=result.page,
        limit=result.limit,
        total=result.total,
        total_pages=result.total_pages,
    )


@router.get("/search", response_model=list[MessageRead])
def search_messages(
    q: str = "",
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> list[MessageRead]:
    try:
        messages = search_messages_for_user(db, user_id=user_id, query=q)
    except COMMAND_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return [_to_read_model(message) for message in messages]


@router.patch("/{message_id}/read", response_model=MessageRead)
def mark_message_read(
    message_id: str,
    payload: MessageReadStateUpdate | None = None,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> MessageRead:
    """Set the read flag of a received message."""

    is_read = payload.is_read if payload is not None else True
    try:
        message = mark_message_read_uc(
            db,
            user_id=user_id,
            message_id=message_id,
            is_read=is_read,
            on_change=submit_change,
        )
    except COMMAND_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return _to_read_model(message)


@router.post("/read-all", response_model=MarkAllReadResponse)
def mark_all_messages_read(
    payload: MarkAllReadRequest | None = None,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> MarkAllReadResponse:
    scope = ReadScope(**payload.model_dump()) if payload is not None else None
    try:
        updated = mark_all_messages_read_uc(db, user_id=user_id, scope=scope, on_change=submit_change)
    except COMMAND_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return MarkAllReadResponse(updated=updated)


@router.delete("/{message_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_message(
    message_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> Response:
    """Delete a message the acting user sent or received."""

    try:
        delete_message_uc(db, user_id=user_id, message_id=message_id, on_change=submit_change)
    except COMMAND_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)

"""Endpoints exposing the conversation threads derived from messages."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.application.use_cases.messaging import (
    ConversationFilters,
    get_conversation_messages as get_conversation_messages_uc,
    list_conversations as list_conversations_uc,
)
from app.application.use_cases.messaging.search import SORT_BY_DATE
from app.infrastructure.database import get_db
from app.interfaces.api.dependencies import get_current_user_id
from app.interfaces.api.routes_helpers import COMMAND_ERRORS, to_http_exception
from app.interfaces.api.schemas import ConversationRead, MessageRead

router = APIRouter(prefix="/conversations", tags=["conversations"])


@router.get("", response_model=list[ConversationRead])
def list_conversations(
    unread_only: bool = False,
    q: str | None = None,
    related_entity_id: str | None = None,
    sort_by: str = SORT_BY_DATE,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> list[ConversationRead]:
    """Cold load of the user's conversations, most recently updated first."""

    try:
        filters = ConversationFilters(
            query=q,
            unread_only=unread_only,
            related_entity_id=related_entity_id,
            sort_by=sort_by,
        )
        conversations = list_conversations_uc(db, user_id=user_id, filters=filters)
    except COMMAND_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return [ConversationRead.model_validate(conversation) for conversation in conversations]


@router.get("/{conversation_id}/messages", response_model=list[MessageRead])
def get_conversation_messages(
    conversation_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> list[MessageRead]:
    try:
        messages = get_conversation_messages_uc(db, user_id=user_id, conversation_id=conversation_id)
    except COMMAND_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return [MessageRead.model_validate(message) for message in messages]

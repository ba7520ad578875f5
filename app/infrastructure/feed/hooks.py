"""SQLAlchemy session hooks publishing committed row changes to the change feed."""

from __future__ import annotations

import logging
import threading
from uuid import uuid4
from weakref import WeakSet

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session

from app.domain.entities import (
    FEED_EVENT_DELETE,
    FEED_EVENT_INSERT,
    FEED_EVENT_UPDATE,
    FEED_TABLE_MESSAGES,
    FEED_TABLE_NOTIFICATIONS,
    FeedEvent,
)
from app.infrastructure.models import MessageModel, NotificationModel
from app.infrastructure.repositories import MessageRepository, NotificationRepository

from .change_feed import ChangeFeed, change_feed

logger = logging.getLogger(__name__)

_PENDING_KEY = "change_feed_pending"
_feeds: WeakSet[ChangeFeed] = WeakSet()
_feeds_lock = threading.Lock()
_listeners_installed = False


def _event(event_type: str, table: str, row: object) -> FeedEvent:
    return FeedEvent(event_id=uuid4().hex, event_type=event_type, table=table, row=row)


def _soft_deleted(model: MessageModel) -> bool:
    history = inspect(model).attrs.deleted_at.history
    return any(value is not None for value in history.added)


def _collect(session: Session) -> list[FeedEvent]:
    events: list[FeedEvent] = []
    for model in session.new:
        if isinstance(model, MessageModel):
            events.append(_event(FEED_EVENT_INSERT, FEED_TABLE_MESSAGES, MessageRepository.to_entity(model)))
        elif isinstance(model, NotificationModel):
            events.append(
                _event(FEED_EVENT_INSERT, FEED_TABLE_NOTIFICATIONS, NotificationRepository.to_entity(model))
            )
    for model in session.dirty:
        if not session.is_modified(model, include_collections=False):
            continue
        if isinstance(model, MessageModel):
            event_type = FEED_EVENT_DELETE if _soft_deleted(model) else FEED_EVENT_UPDATE
            events.append(_event(event_type, FEED_TABLE_MESSAGES, MessageRepository.to_entity(model)))
        elif isinstance(model, NotificationModel):
            events.append(
                _event(FEED_EVENT_UPDATE, FEED_TABLE_NOTIFICATIONS, NotificationRepository.to_entity(model))
            )
    for model in session.deleted:
        if isinstance(model, MessageModel):
            events.append(_event(FEED_EVENT_DELETE, FEED_TABLE_MESSAGES, MessageRepository.to_entity(model)))
        elif isinstance(model, NotificationModel):
            events.append(
                _event(FEED_EVENT_DELETE, FEED_TABLE_NOTIFICATIONS, NotificationRepository.to_entity(model))
            )
    return events


def _collect_changes(session: Session, flush_context) -> None:
    # Session collections still describe the pre-flush state here.
    pending = session.info.setdefault(_PENDING_KEY, [])
    pending.extend(_collect(session))


def _publish_changes(session: Session) -> None:
    pending = session.info.pop(_PENDING_KEY, [])
    if not pending:
        return
    with _feeds_lock:
        feeds = list(_feeds)
    logger.debug("Publishing %d feed event(s) to %d feed(s)", len(pending), len(feeds))
    for feed in feeds:
        feed.publish_many(pending)


def _discard_changes(session: Session) -> None:
    session.info.pop(_PENDING_KEY, None)


def register_feed_hooks(feed: ChangeFeed = change_feed) -> None:
    """Publish committed row changes into ``feed``; idempotent.

    The session listeners are installed once and fan out to every
    registered feed, so each feed sees each committed change exactly once.
    """

    global _listeners_installed
    with _feeds_lock:
        _feeds.add(feed)
        if _listeners_installed:
            return
        _listeners_installed = True
    event.listen(Session, "after_flush", _collect_changes)
    event.listen(Session, "after_commit", _publish_changes)
    event.listen(Session, "after_rollback", _discard_changes)


__all__ = ["register_feed_hooks"]

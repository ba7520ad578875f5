"""Per-user realtime router keeping an aggregated conversation view in sync.

Each connected user owns one :class:`ConversationSubscription`. It moves
through ``connecting -> synced -> degraded -> ... -> closed``:

* entering ``synced`` always starts from a cold load (full aggregation of
  the user's messages) taken *after* the feed subscription is open, so no
  change can fall between the snapshot and the stream;
* while ``synced`` feed events are applied one at a time in delivery order;
* a transient feed or repository failure moves to ``degraded`` and, after
  a bounded exponential backoff, back to ``connecting`` for a fresh cold
  load instead of trying to fill the gap;
* an explicit close or a hard feed error ends in ``closed``, releasing all
  per-user state.

The view is only ever mutated from the subscription's own event sequence.
Commands reach it either through the change feed or as optimistic changes
queued on that same sequence.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Sequence
from typing import Protocol

import anyio

from app.application.use_cases.messaging.aggregation import (
    ConversationAggregator,
    ConversationBook,
    sort_conversations,
)
from app.application.use_cases.messaging.changes import CHANGE_BULK_READ, OptimisticChange
from app.application.use_cases.messaging.unread import UnreadTracker
from app.domain.entities import (
    FEED_EVENT_DELETE,
    FEED_EVENT_INSERT,
    FEED_EVENT_UPDATE,
    FEED_TABLE_MESSAGES,
    Conversation,
    ConversationKey,
    FeedEvent,
    Message,
)
from app.domain.errors import FeedClosedError, TransientIOError
from app.infrastructure.feed import ChangeFeed, FeedSubscription

logger = logging.getLogger(__name__)

STATE_CONNECTING = "connecting"
STATE_SYNCED = "synced"
STATE_DEGRADED = "degraded"
STATE_CLOSED = "closed"


class PresentationSink(Protocol):
    def conversation_list_changed(self, user_id: str, conversations: Sequence[Conversation]) -> None: ...

    def conversation_updated(self, user_id: str, conversation: Conversation) -> None: ...

    def unread_count_changed(self, user_id: str, total: int) -> None: ...

    def subscription_state_changed(self, user_id: str, state: str) -> None: ...


MessageLoader = Callable[[str], Sequence[Message]]
MessageNotifier = Callable[[Message], object]
Sleep = Callable[[float], Awaitable[None]]


class ConversationSubscription:
    """Single-user actor applying change feed events to a conversation view."""

    def __init__(
        self,
        user_id: str,
        *,
        feed: ChangeFeed,
        load_messages: MessageLoader,
        sink: PresentationSink,
        notify: MessageNotifier | None = None,
        aggregator: ConversationAggregator | None = None,
        initial_delay: float = 0.5,
        max_delay: float = 10.0,
        max_attempts: int = 5,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.user_id = user_id
        self._feed = feed
        self._load_messages = load_messages
        self._sink = sink
        self._notify = notify
        self._aggregator = aggregator or ConversationAggregator()
        self._initial_delay = initial_delay
        self._max_delay = max_delay
        self._max_attempts = max_attempts
        self._sleep = sleep

        self._book = ConversationBook(user_id)
        self._tracker = UnreadTracker(user_id)
        self._order: list[ConversationKey] = []
        # Feed knowledge gathered since the last cold load.
        self._confirmed: set[str] = set()
        self._tombstones: set[str] = set()
        self._state = STATE_CONNECTING
        self._stream: FeedSubscription | None = None
        self._closing = False
        self.resyncs = 0

    # -- read side -----------------------------------------------------

    @property
    def state(self) -> str:
        return self._state

    @property
    def unread_total(self) -> int:
        return self._tracker.total

    @property
    def consistency_violations(self) -> int:
        return self._tracker.violations

    def conversations(self) -> list[Conversation]:
        return sort_conversations(
            thread.to_conversation(self._tracker.count(thread.key)) for thread in self._book
        )

    def conversation(self, key: ConversationKey) -> Conversation | None:
        thread = self._book.thread(key)
        if thread is None:
            return None
        return thread.to_conversation(self._tracker.count(key))

    def message(self, message_id: str) -> Message | None:
        return self._book.get(message_id)

    # -- lifecycle -----------------------------------------------------

    async def run(self) -> None:
        """Drive the subscription until it is closed."""

        attempts = 0
        try:
            while not self._closing:
                self._set_state(STATE_CONNECTING)
                try:
                    self._stream = self._feed.subscribe(self._accepts)
                    messages = await anyio.to_thread.run_sync(self._load_messages, self.user_id)
                    if self._closing:
                        # The subscription was torn down while loading.
                        break
                    self.load_snapshot(messages)
                    attempts = 0
                    self._set_state(STATE_SYNCED)
                    await self._consume(self._stream)
                except TransientIOError as exc:
                    self._drop_stream()
                    attempts += 1
                    if attempts > self._max_attempts:
                        logger.error(
                            "Giving up on subscription of %s after %d attempts: %s",
                            self.user_id,
                            attempts - 1,
                            exc,
                        )
                        break
                    delay = min(self._max_delay, self._initial_delay * 2 ** (attempts - 1))
                    logger.warning(
                        "Subscription of %s degraded (%s); retrying in %.2fs",
                        self.user_id,
                        exc,
                        delay,
                    )
                    self._set_state(STATE_DEGRADED)
                    await self._sleep(delay)
                    self.resyncs += 1
                except FeedClosedError:
                    if not self._closing:
                        logger.error("Change feed closed under subscription of %s", self.user_id)
                    break
        finally:
            self._release()

    async def _consume(self, stream: FeedSubscription) -> None:
        while True:
            item = await stream.get()
            if isinstance(item, OptimisticChange):
                self.apply_optimistic(item)
                continue
            inserted = self.apply(item)
            if inserted is not None and self._notify is not None:
                await self._dispatch_notification(inserted)

    async def _dispatch_notification(self, message: Message) -> None:
        try:
            await anyio.to_thread.run_sync(self._notify, message)
        except TransientIOError as exc:
            # The background notification worker persists it later.
            logger.warning("Notification for message %s deferred: %s", message.id, exc)

    def close(self) -> None:
        """Request teardown; ``run`` returns once the stream is released."""

        self._closing = True
        self._release()

    def submit(self, change: OptimisticChange) -> bool:
        """Queue ``change`` on this subscription's event sequence (thread safe)."""

        stream = self._stream
        if stream is None or self._state != STATE_SYNCED:
            return False
        return stream.push_local(change)

    def _drop_stream(self) -> None:
        stream, self._stream = self._stream, None
        if stream is not None:
            stream.unsubscribe()

    def _release(self) -> None:
        self._drop_stream()
        self._book.clear()
        self._tracker.clear()
        self._order = []
        self._confirmed.clear()
        self._tombstones.clear()
        self._set_state(STATE_CLOSED)

    def _set_state(self, state: str) -> None:
        if state == self._state:
            return
        logger.info("Subscription of %s: %s -> %s", self.user_id, self._state, state)
        self._state = state
        self._sink.subscription_state_changed(self.user_id, state)

    def _accepts(self, event: FeedEvent) -> bool:
        row = event.row
        return event.table == FEED_TABLE_MESSAGES and isinstance(row, Message) and row.involves(self.user_id)

    # -- event application ---------------------------------------------

    def load_snapshot(self, messages: Iterable[Message]) -> None:
        """Replace the whole view with a cold load of ``messages``."""

        self._book = self._aggregator.build_book(self.user_id, messages)
        self._tracker.reset(self._book)
        self._confirmed.clear()
        self._tombstones.clear()
        conversations = self.conversations()
        self._order = [conversation.key for conversation in conversations]
        self._sink.conversation_list_changed(self.user_id, conversations)
        self._sink.unread_count_changed(self.user_id, self._tracker.total)

    def apply(self, event: FeedEvent) -> Message | None:
        """Apply one feed event; returns the message when it was newly inserted."""

        row = event.row
        if not isinstance(row, Message) or not row.id:
            logger.warning("Ignoring feed event %s without a message row", event.event_id)
            return None
        if row.id in self._tombstones:
            # Deletion is final; later deliveries for the id are stale.
            return None
        unread_before = self._tracker.total
        touched: set[ConversationKey] = set()
        inserted: Message | None = None

        if event.event_type == FEED_EVENT_DELETE or row.is_deleted:
            self._tombstones.add(row.id)
            self._confirmed.discard(row.id)
            self._remove(row.id, touched)
        elif event.event_type == FEED_EVENT_INSERT:
            self._confirmed.add(row.id)
            # A redelivered insert never carries newer state than the stored row.
            if self._book.get(row.id) is None and self._upsert(row, touched):
                inserted = row
        elif event.event_type == FEED_EVENT_UPDATE:
            self._confirmed.add(row.id)
            self._upsert(row, touched)
        else:
            logger.warning("Unknown feed event type %r", event.event_type)
            return None

        self._emit(touched, unread_before)
        if inserted is not None and inserted.recipient_id == self.user_id:
            return inserted
        return None

    def apply_optimistic(self, change: OptimisticChange) -> None:
        """Apply a command result the feed has not reported yet.

        Rows whose id the feed already confirmed or deleted since the last
        cold load are skipped: the feed-derived state is at least as new.
        """

        unread_before = self._tracker.total
        touched: set[ConversationKey] = set()
        if change.event_type == FEED_EVENT_DELETE:
            # A committed deletion cannot be superseded by later feed state.
            for row in change.rows:
                self._remove(row.id, touched)
            self._emit(touched, unread_before)
            return
        rows = [row for row in change.rows if self._awaits_feed(row.id)]
        if change.event_type == CHANGE_BULK_READ:
            for row in rows:
                stored = self._book.get(row.id)
                if stored is not None and stored != row:
                    key, _ = self._book.put(row)
                    touched.add(key)
            keys = self._book.keys() if change.keys is None else list(change.keys)
            for key in keys:
                if self._tracker.count(key):
                    touched.add(key)
                self._tracker.recompute(self._book, key)
        else:
            for row in rows:
                self._upsert(row, touched)
        self._emit(touched, unread_before)

    def _awaits_feed(self, message_id: str | None) -> bool:
        return bool(message_id) and message_id not in self._confirmed and message_id not in self._tombstones

    def _upsert(self, row: Message, touched: set[ConversationKey]) -> bool:
        """Store ``row``; returns ``True`` when it was not known before."""

        stored = self._book.get(row.id)
        if stored is not None and stored == row:
            return False
        if stored is None and not self._aggregator.accepts(self.user_id, row):
            return False
        key, previous = self._book.put(row)
        if previous is None:
            self._tracker.on_insert(key, row)
        else:
            previous_key = ConversationKey.for_message(previous)
            if previous_key != key:
                self._tracker.on_delete(previous_key, previous)
                self._tracker.on_insert(key, row)
                touched.add(previous_key)
            else:
                self._tracker.on_update(key, previous, row)
        touched.add(key)
        return previous is None

    def _remove(self, message_id: str, touched: set[ConversationKey]) -> None:
        key = self._book.key_of(message_id)
        if key is None:
            return
        removed = self._book.remove(message_id)
        if removed is None:
            return
        self._tracker.on_delete(key, removed)
        if self._book.thread(key) is None:
            self._tracker.forget(key)
        touched.add(key)

    def _emit(self, touched: set[ConversationKey], unread_before: int) -> None:
        if not touched:
            return
        for key in touched:
            conversation = self.conversation(key)
            if conversation is not None:
                self._sink.conversation_updated(self.user_id, conversation)
        conversations = self.conversations()
        order = [conversation.key for conversation in conversations]
        if order != self._order:
            self._order = order
            self._sink.conversation_list_changed(self.user_id, conversations)
        total = self._tracker.total
        if total != unread_before:
            self._sink.unread_count_changed(self.user_id, total)


__all__ = [
    "CHANGE_BULK_READ",
    "ConversationSubscription",
    "OptimisticChange",
    "PresentationSink",
    "STATE_CLOSED",
    "STATE_CONNECTING",
    "STATE_DEGRADED",
    "STATE_SYNCED",
]

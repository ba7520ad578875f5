"""Background consumer persisting a notification for every new message."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime

import anyio

from app.domain.entities import FEED_EVENT_INSERT, FEED_TABLE_MESSAGES, FeedEvent, Message
from app.domain.errors import FeedClosedError, TransientIOError
from app.infrastructure.feed import ChangeFeed

logger = logging.getLogger(__name__)

MessageNotifier = Callable[[Message], object]
CatchUpLoader = Callable[[datetime], list[Message]]


def _is_message_insert(event: FeedEvent) -> bool:
    return (
        event.table == FEED_TABLE_MESSAGES
        and event.event_type == FEED_EVENT_INSERT
        and isinstance(event.row, Message)
    )


class NotificationWorker:
    """Notify recipients whether or not they are connected.

    After a transient feed failure the worker resubscribes and replays the
    messages created since the last one it saw; the dispatcher's dedup key
    turns the overlap into no-ops.
    """

    def __init__(
        self,
        *,
        feed: ChangeFeed,
        notify: MessageNotifier,
        load_since: CatchUpLoader,
        initial_delay: float = 0.5,
        max_delay: float = 10.0,
        max_attempts: int = 5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._feed = feed
        self._notify = notify
        self._load_since = load_since
        self._initial_delay = initial_delay
        self._max_delay = max_delay
        self._max_attempts = max_attempts
        self._sleep = sleep
        self._task: asyncio.Task | None = None
        self._last_seen: datetime | None = None
        self.processed = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self.run())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def run(self) -> None:
        attempts = 0
        while True:
            try:
                stream = self._feed.subscribe(_is_message_insert)
            except FeedClosedError:
                logger.info("Change feed closed; notification worker stops")
                return
            try:
                if self._last_seen is not None:
                    await self._catch_up(self._last_seen)
                attempts = 0
                async for event in stream:
                    await self._handle(event.row)
                logger.info("Change feed closed; notification worker stops")
                return
            except TransientIOError as exc:
                attempts += 1
                if attempts > self._max_attempts:
                    logger.error("Notification worker giving up after %d attempts: %s", attempts - 1, exc)
                    return
                delay = min(self._max_delay, self._initial_delay * 2 ** (attempts - 1))
                logger.warning("Notification worker interrupted (%s); retrying in %.2fs", exc, delay)
                await self._sleep(delay)
            finally:
                stream.unsubscribe()

    async def _catch_up(self, since: datetime) -> None:
        messages = await anyio.to_thread.run_sync(self._load_since, since)
        logger.info("Replaying %d message(s) created since %s", len(messages), since.isoformat())
        for message in messages:
            await self._handle(message)

    async def _handle(self, message: Message) -> None:
        if message.created_at is not None and (
            self._last_seen is None or message.created_at > self._last_seen
        ):
            self._last_seen = message.created_at
        try:
            await anyio.to_thread.run_sync(self._notify, message)
        except TransientIOError as exc:
            logger.warning("Could not store notification for message %s: %s", message.id, exc)
        else:
            self.processed += 1


__all__ = ["NotificationWorker"]

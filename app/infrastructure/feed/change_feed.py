"""In-process change feed delivering message log row changes to subscribers."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Callable, Iterable

from app.domain.entities import FeedEvent
from app.domain.errors import FeedClosedError, TransientIOError

logger = logging.getLogger(__name__)

FeedPredicate = Callable[[FeedEvent], bool]

_END = object()


class FeedSubscription:
    """Async stream of the feed events accepted by ``predicate``.

    Events are queued on the event loop that created the subscription, so
    producers running in worker threads can publish safely. Delivery is
    in publication order for this subscriber.
    """

    def __init__(
        self,
        feed: "ChangeFeed",
        predicate: FeedPredicate | None,
        loop: asyncio.AbstractEventLoop,
    ) -> None:
        self._feed = feed
        self._predicate = predicate
        self._loop = loop
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def matches(self, event: FeedEvent) -> bool:
        if self._predicate is None:
            return True
        try:
            return bool(self._predicate(event))
        except Exception:  # pragma: no cover - predicate bugs must not stop the feed
            logger.exception("Feed predicate failed for event %s", event.event_id)
            return False

    def _deliver(self, item: object) -> None:
        if self._closed:
            return
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, item)
        except RuntimeError:
            # The subscriber's loop is gone; nobody is listening anymore.
            self._closed = True

    def _terminate(self, item: object) -> None:
        self._deliver(item)
        self._closed = True

    async def get(self) -> FeedEvent:
        """Wait for the next event.

        Raises :class:`TransientIOError` when the feed was interrupted and
        :class:`FeedClosedError` once the subscription has ended.
        """

        item = await self._queue.get()
        if item is _END:
            raise FeedClosedError("Feed subscription ended")
        if isinstance(item, BaseException):
            raise item
        return item  # type: ignore[return-value]

    def __aiter__(self) -> "FeedSubscription":
        return self

    async def __anext__(self) -> FeedEvent:
        try:
            return await self.get()
        except FeedClosedError:
            raise StopAsyncIteration from None

    def push_local(self, item: object) -> bool:
        """Queue a locally produced change behind the events already delivered."""

        if self._closed:
            return False
        self._deliver(item)
        return not self._closed

    def unsubscribe(self) -> None:
        self._feed.unsubscribe(self)


class ChangeFeed:
    """Fan out row changes to the subscriptions whose predicate matches."""

    def __init__(self) -> None:
        self._subscriptions: set[FeedSubscription] = set()
        self._lock = threading.Lock()
        self._closed = False

    def subscribe(self, predicate: FeedPredicate | None = None) -> FeedSubscription:
        """Register a new subscription bound to the running event loop."""

        if self._closed:
            raise FeedClosedError("Change feed is closed")
        loop = asyncio.get_running_loop()
        subscription = FeedSubscription(self, predicate, loop)
        with self._lock:
            self._subscriptions.add(subscription)
        return subscription

    def unsubscribe(self, subscription: FeedSubscription) -> None:
        with self._lock:
            self._subscriptions.discard(subscription)
        subscription._terminate(_END)

    def publish(self, event: FeedEvent) -> None:
        self.publish_many([event])

    def publish_many(self, events: Iterable[FeedEvent]) -> None:
        """Deliver ``events`` in order to every matching subscription."""

        with self._lock:
            subscriptions = list(self._subscriptions)
        for event in events:
            for subscription in subscriptions:
                if subscription.matches(event):
                    subscription._deliver(event)

    def interrupt(self, error: Exception | None = None) -> None:
        """Simulate a transient outage: every current subscription is dropped.

        Subscribers observe :class:`TransientIOError` and are expected to
        resubscribe and resynchronise.
        """

        failure = error or TransientIOError("Change feed connection lost")
        with self._lock:
            subscriptions = list(self._subscriptions)
            self._subscriptions.clear()
        logger.warning("Interrupting %d feed subscription(s): %s", len(subscriptions), failure)
        for subscription in subscriptions:
            subscription._terminate(failure)

    def close(self) -> None:
        """End the feed permanently."""

        with self._lock:
            subscriptions = list(self._subscriptions)
            self._subscriptions.clear()
            self._closed = True
        for subscription in subscriptions:
            subscription._terminate(FeedClosedError("Change feed is closed"))

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)


change_feed = ChangeFeed()


__all__ = ["ChangeFeed", "FeedSubscription", "FeedPredicate", "change_feed"]

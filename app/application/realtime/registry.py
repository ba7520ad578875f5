"""Live conversation subscriptions, one per connected user."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from app.application.use_cases.messaging.changes import OptimisticChange

from .router import STATE_CLOSED, ConversationSubscription

logger = logging.getLogger(__name__)

SubscriptionFactory = Callable[[str], ConversationSubscription]


class SubscriptionRegistry:
    """Reference counted map of user id to running :class:`ConversationSubscription`.

    Several sockets of the same user share one subscription; it is torn
    down when the last of them is released.
    """

    def __init__(self, factory: SubscriptionFactory) -> None:
        self._factory = factory
        self._subscriptions: dict[str, ConversationSubscription] = {}
        self._tasks: dict[str, asyncio.Task] = {}
        self._refcounts: dict[str, int] = {}

    def get(self, user_id: str) -> ConversationSubscription | None:
        return self._subscriptions.get(user_id)

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._subscriptions

    def __len__(self) -> int:
        return len(self._subscriptions)

    def acquire(self, user_id: str) -> ConversationSubscription:
        """Return the user's subscription, starting it when needed.

        Must be called from the event loop.
        """

        subscription = self._subscriptions.get(user_id)
        task = self._tasks.get(user_id)
        if subscription is None or task is None or task.done() or subscription.state == STATE_CLOSED:
            subscription = self._factory(user_id)
            self._subscriptions[user_id] = subscription
            self._tasks[user_id] = asyncio.get_running_loop().create_task(subscription.run())
            logger.info("Started conversation subscription for %s", user_id)
        self._refcounts[user_id] = self._refcounts.get(user_id, 0) + 1
        return subscription

    async def release(self, user_id: str) -> None:
        remaining = self._refcounts.get(user_id, 0) - 1
        if remaining > 0:
            self._refcounts[user_id] = remaining
            return
        self._refcounts.pop(user_id, None)
        await self._stop(user_id)

    async def _stop(self, user_id: str) -> None:
        subscription = self._subscriptions.pop(user_id, None)
        task = self._tasks.pop(user_id, None)
        if subscription is not None:
            subscription.close()
        if task is not None:
            try:
                await task
            except Exception:
                logger.exception("Conversation subscription for %s failed", user_id)
        logger.info("Stopped conversation subscription for %s", user_id)

    def submit(self, user_id: str, change: OptimisticChange) -> bool:
        """Hand a command result to the user's live view, if there is one.

        Safe to call from worker threads.
        """

        subscription = self._subscriptions.get(user_id)
        if subscription is None:
            return False
        return subscription.submit(change)

    async def close_all(self) -> None:
        for user_id in list(self._subscriptions):
            self._refcounts.pop(user_id, None)
            await self._stop(user_id)


__all__ = ["SubscriptionRegistry", "SubscriptionFactory"]

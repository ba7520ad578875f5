"""Ephemeral typing indicators kept in memory with a short TTL."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import datetime, timedelta

from app.domain.entities import TypingIndicator
from app.utils import now_in_app_timezone


class TypingIndicatorRegistry:
    """Latest typing signal per ``(conversation_id, user_id)``.

    Expired signals are dropped whenever the registry is written or read.
    """

    def __init__(
        self,
        ttl_seconds: float,
        *,
        clock: Callable[[], datetime] = now_in_app_timezone,
    ) -> None:
        self._ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock
        self._indicators: dict[tuple[str, str], TypingIndicator] = {}

    def __len__(self) -> int:
        return len(self._indicators)

    def signal(self, user_id: str, conversation_id: str) -> TypingIndicator:
        now = self._clock()
        self.prune(now)
        indicator = TypingIndicator(
            user_id=user_id,
            conversation_id=conversation_id,
            expires_at=now + self._ttl,
        )
        self._indicators[(conversation_id, user_id)] = indicator
        return indicator

    def active(self, conversation_id: str) -> list[TypingIndicator]:
        self.prune()
        return [
            indicator
            for (key_conversation, _), indicator in self._indicators.items()
            if key_conversation == conversation_id
        ]

    def visible_to(self, user_id: str, conversation_ids: Iterable[str]) -> list[TypingIndicator]:
        """Live signals of other participants in ``conversation_ids``."""

        visible = []
        for conversation_id in dict.fromkeys(conversation_ids):
            visible.extend(
                indicator for indicator in self.active(conversation_id) if indicator.user_id != user_id
            )
        return visible

    def clear(self, user_id: str, conversation_id: str) -> None:
        self._indicators.pop((conversation_id, user_id), None)

    def prune(self, now: datetime | None = None) -> int:
        now = now or self._clock()
        expired = [key for key, indicator in self._indicators.items() if not indicator.is_active(now)]
        for key in expired:
            del self._indicators[key]
        return len(expired)


__all__ = ["TypingIndicatorRegistry"]

"""Ephemeral typing signal exchanged between conversation participants."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class TypingIndicator:
    user_id: str
    conversation_id: str
    expires_at: datetime

    def is_active(self, now: datetime) -> bool:
        return now < self.expires_at


__all__ = ["TypingIndicator"]

"""Locally applied results of commands, reconciled later by the feed echo."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from app.domain.entities import ConversationKey, Message

CHANGE_BULK_READ = "bulk-read"


@dataclass(frozen=True)
class OptimisticChange:
    """Result of a command that already succeeded against the repository.

    ``event_type`` is one of the feed event types, or ``bulk-read`` for a
    "mark all as read" batch. ``keys`` limits the batch to some
    conversations; ``None`` means every conversation of the viewer.
    """

    event_type: str
    rows: tuple[Message, ...]
    keys: tuple[ConversationKey, ...] | None = None


ChangeListener = Callable[[str, OptimisticChange], object]


__all__ = ["CHANGE_BULK_READ", "ChangeListener", "OptimisticChange"]

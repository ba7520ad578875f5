from __future__ import annotations

from datetime import timedelta

from factories import at

from app.application.realtime import TypingIndicatorRegistry


class _Clock:
    def __init__(self) -> None:
        self.now = at(0)

    def __call__(self):
        return self.now


def test_latest_signal_wins_and_expires() -> None:
    clock = _Clock()
    registry = TypingIndicatorRegistry(5, clock=clock)

    registry.signal("parent", "conv-1")
    clock.now += timedelta(seconds=3)
    latest = registry.signal("parent", "conv-1")
    registry.signal("tutor", "conv-2")

    assert registry.active("conv-1") == [latest]
    assert latest.expires_at == at(0) + timedelta(seconds=8)

    clock.now += timedelta(seconds=6)
    assert registry.active("conv-1") == []
    assert registry.active("conv-2") == []


def test_clear_removes_signal() -> None:
    registry = TypingIndicatorRegistry(5, clock=_Clock())
    registry.signal("parent", "conv-1")

    registry.clear("parent", "conv-1")

    assert registry.active("conv-1") == []


def test_signalling_drops_expired_entries() -> None:
    clock = _Clock()
    registry = TypingIndicatorRegistry(5, clock=clock)
    for index in range(10):
        registry.signal("parent", f"conv-{index}")
    assert len(registry) == 10

    clock.now += timedelta(seconds=6)
    registry.signal("tutor", "conv-new")

    assert len(registry) == 1


def test_visible_to_skips_own_and_expired_signals() -> None:
    clock = _Clock()
    registry = TypingIndicatorRegistry(5, clock=clock)
    registry.signal("parent", "conv-1")
    stale = registry.signal("nurse", "conv-2")
    clock.now += timedelta(seconds=4)
    tutor = registry.signal("tutor", "conv-1")
    clock.now += timedelta(seconds=2)

    visible = registry.visible_to("parent", ["conv-1", "conv-2", "conv-1"])

    assert visible == [tutor]
    assert stale not in visible

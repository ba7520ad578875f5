from __future__ import annotations

import asyncio
import random
from dataclasses import replace

import anyio
import pytest

from factories import RecordingSink, at, event, make_message, read

from app.application.realtime import (
    STATE_CLOSED,
    STATE_DEGRADED,
    STATE_SYNCED,
    ConversationSubscription,
)
from app.application.use_cases.messaging import CHANGE_BULK_READ, OptimisticChange
from app.application.use_cases.messaging.unread import unread_count
from app.domain.entities import (
    FEED_EVENT_DELETE,
    FEED_EVENT_INSERT,
    FEED_EVENT_UPDATE,
    ConversationKey,
)
from app.domain.errors import TransientIOError
from app.infrastructure.feed import ChangeFeed


def _subscription(sink, *, load=None, notify=None, **kwargs) -> ConversationSubscription:
    return ConversationSubscription(
        "parent",
        feed=kwargs.pop("feed", ChangeFeed()),
        load_messages=load or (lambda user_id: []),
        sink=sink,
        notify=notify,
        **kwargs,
    )


async def _wait_for(predicate, timeout: float = 3.0) -> None:
    with anyio.fail_after(timeout):
        while not predicate():
            await anyio.sleep(0.01)


def test_insert_creates_conversation_and_counts_unread() -> None:
    sink = RecordingSink()
    subscription = _subscription(sink)
    subscription.load_snapshot([])

    message = make_message("m1", "tutor", "parent", minutes=1)
    inserted = subscription.apply(event(FEED_EVENT_INSERT, message))

    assert inserted == message
    (conversation,) = subscription.conversations()
    assert conversation.unread_count == 1
    assert sink.totals == [0, 1]
    assert sink.updates[-1].last_message == message


def test_outgoing_insert_is_not_returned_for_notification() -> None:
    subscription = _subscription(RecordingSink())
    subscription.load_snapshot([])

    assert subscription.apply(event(FEED_EVENT_INSERT, make_message("m1", "parent", "tutor"))) is None
    assert subscription.unread_total == 0


def test_duplicate_events_are_no_ops() -> None:
    sink = RecordingSink()
    subscription = _subscription(sink)
    subscription.load_snapshot([])
    message = make_message("m1", "tutor", "parent")
    subscription.apply(event(FEED_EVENT_INSERT, message))
    subscription.apply(event(FEED_EVENT_UPDATE, read(message)))
    before = (subscription.conversations(), subscription.unread_total, sink.event_count)

    assert subscription.apply(event(FEED_EVENT_INSERT, message, "redelivered")) is None
    subscription.apply(event(FEED_EVENT_UPDATE, read(message), "redelivered-update"))

    after = (subscription.conversations(), subscription.unread_total, sink.event_count)
    assert after == before
    assert subscription.unread_total == 0
    assert subscription.consistency_violations == 0


def test_replaying_identical_rows_emits_nothing() -> None:
    sink = RecordingSink()
    subscription = _subscription(sink)
    message = make_message("m1", "tutor", "parent")
    subscription.load_snapshot([message])
    count = sink.event_count

    subscription.apply(event(FEED_EVENT_INSERT, message))
    subscription.apply(event(FEED_EVENT_UPDATE, message))

    assert sink.event_count == count
    assert subscription.unread_total == 1


def test_last_message_independent_of_arrival_order() -> None:
    older = make_message("a", "tutor", "parent", minutes=1)
    newer = make_message("b", "parent", "tutor", minutes=2)

    for ordering in ([older, newer], [newer, older]):
        subscription = _subscription(RecordingSink())
        subscription.load_snapshot([])
        for message in ordering:
            subscription.apply(event(FEED_EVENT_INSERT, message))
        (conversation,) = subscription.conversations()
        assert conversation.last_message == newer


def test_update_of_unknown_row_is_applied_as_insert() -> None:
    subscription = _subscription(RecordingSink())
    subscription.load_snapshot([])

    inserted = subscription.apply(event(FEED_EVENT_UPDATE, make_message("m1", "tutor", "parent")))

    assert inserted is None
    assert subscription.unread_total == 1
    assert subscription.message("m1") is not None


def test_deleting_last_message_falls_back_then_removes_conversation() -> None:
    sink = RecordingSink()
    m1 = make_message("m1", "tutor", "parent", minutes=1)
    m2 = make_message("m2", "tutor", "parent", minutes=2)
    subscription = _subscription(sink)
    subscription.load_snapshot([m1, m2])

    subscription.apply(event(FEED_EVENT_DELETE, m2))
    (conversation,) = subscription.conversations()
    assert conversation.last_message == m1
    assert conversation.updated_at == at(1)
    assert conversation.unread_count == 1

    subscription.apply(event(FEED_EVENT_DELETE, m1))
    assert subscription.conversations() == []
    assert subscription.unread_total == 0
    assert sink.lists[-1] == []
    assert sink.totals[-1] == 0


def test_soft_deleted_update_removes_the_message() -> None:
    m1 = make_message("m1", "tutor", "parent", minutes=1)
    subscription = _subscription(RecordingSink())
    subscription.load_snapshot([m1])

    subscription.apply(event(FEED_EVENT_UPDATE, replace(m1, deleted_at=at(3))))

    assert subscription.conversations() == []


def test_delete_of_unknown_message_is_ignored() -> None:
    sink = RecordingSink()
    subscription = _subscription(sink)
    subscription.load_snapshot([])
    count = sink.event_count

    subscription.apply(event(FEED_EVENT_DELETE, make_message("ghost", "tutor", "parent")))

    assert sink.event_count == count


def test_mark_all_read_through_feed_events() -> None:
    sink = RecordingSink()
    unread = [
        make_message("m1", "tutor", "parent", minutes=1),
        make_message("m2", "tutor", "parent", minutes=2),
        make_message("m3", "coach", "parent", minutes=3),
    ]
    subscription = _subscription(sink)
    subscription.load_snapshot(unread)
    assert sink.totals == [3]

    for message in unread:
        subscription.apply(event(FEED_EVENT_UPDATE, read(message)))

    assert sink.totals[-1] == 0
    assert all(conversation.unread_count == 0 for conversation in subscription.conversations())


def test_optimistic_bulk_read_reconciles_with_feed_echo() -> None:
    sink = RecordingSink()
    unread = [
        make_message("m1", "tutor", "parent", minutes=1),
        make_message("m2", "tutor", "parent", minutes=2),
        make_message("m3", "coach", "parent", minutes=3),
    ]
    subscription = _subscription(sink)
    subscription.load_snapshot(unread)
    rows = tuple(read(message) for message in unread)

    subscription.apply_optimistic(OptimisticChange(CHANGE_BULK_READ, rows))
    assert sink.totals == [3, 0]

    for row in rows:
        subscription.apply(event(FEED_EVENT_UPDATE, row))

    assert sink.totals == [3, 0]
    assert subscription.unread_total == 0
    assert subscription.consistency_violations == 0


def test_scoped_bulk_read_only_touches_given_conversations() -> None:
    tutor_message = make_message("m1", "tutor", "parent", minutes=1)
    coach = make_message("m2", "coach", "parent", minutes=2)
    subscription = _subscription(RecordingSink())
    subscription.load_snapshot([tutor_message, coach])

    subscription.apply_optimistic(
        OptimisticChange(CHANGE_BULK_READ, (read(tutor_message),), (ConversationKey.for_message(tutor_message),))
    )

    assert subscription.unread_total == 1
    assert subscription.conversation(ConversationKey.for_message(coach)).unread_count == 1


def test_optimistic_insert_is_not_counted_twice() -> None:
    sink = RecordingSink()
    subscription = _subscription(sink)
    subscription.load_snapshot([])
    sent = make_message("m1", "parent", "tutor", minutes=1)

    subscription.apply_optimistic(OptimisticChange(FEED_EVENT_INSERT, (sent,)))
    count = sink.event_count
    subscription.apply(event(FEED_EVENT_INSERT, sent))

    assert sink.event_count == count
    (conversation,) = subscription.conversations()
    assert conversation.message_count == 1


def test_list_changes_only_when_order_changes() -> None:
    sink = RecordingSink()
    tutor_message = make_message("m1", "tutor", "parent", minutes=1)
    coach = make_message("m2", "coach", "parent", minutes=2)
    subscription = _subscription(sink)
    subscription.load_snapshot([tutor_message, coach])
    lists_before = len(sink.lists)

    subscription.apply(event(FEED_EVENT_UPDATE, read(coach)))
    assert len(sink.lists) == lists_before

    subscription.apply(event(FEED_EVENT_INSERT, make_message("m3", "tutor", "parent", minutes=5)))
    assert len(sink.lists) == lists_before + 1
    assert sink.lists[-1][0].key.counterpart_of("parent") == "tutor"


@pytest.mark.anyio
async def test_run_syncs_applies_events_and_notifies() -> None:
    feed = ChangeFeed()
    sink = RecordingSink()
    notified = []
    existing = make_message("m1", "tutor", "parent", minutes=1)
    subscription = _subscription(
        sink, feed=feed, load=lambda user_id: [existing], notify=notified.append
    )
    task = asyncio.get_running_loop().create_task(subscription.run())

    await _wait_for(lambda: subscription.state == STATE_SYNCED)
    assert subscription.unread_total == 1

    incoming = make_message("m2", "tutor", "parent", minutes=2)
    feed.publish(event(FEED_EVENT_INSERT, incoming))
    feed.publish(event(FEED_EVENT_INSERT, make_message("x", "tutor", "someone-else", minutes=3)))
    await _wait_for(lambda: notified == [incoming])
    assert subscription.unread_total == 2
    assert subscription.message("x") is None

    subscription.close()
    await task
    assert subscription.state == STATE_CLOSED
    assert subscription.conversations() == []
    assert feed.subscriber_count == 0


@pytest.mark.anyio
async def test_transient_failure_resyncs_with_a_cold_load() -> None:
    feed = ChangeFeed()
    sink = RecordingSink()
    rows = [make_message("m1", "tutor", "parent", minutes=1)]
    delays = []

    async def fake_sleep(delay: float) -> None:
        delays.append(delay)

    subscription = _subscription(
        sink,
        feed=feed,
        load=lambda user_id: list(rows),
        initial_delay=0.5,
        max_delay=10.0,
        max_attempts=3,
        sleep=fake_sleep,
    )
    task = asyncio.get_running_loop().create_task(subscription.run())
    await _wait_for(lambda: subscription.state == STATE_SYNCED)

    # Written while the feed is down: only the resync can pick it up.
    missed = make_message("m2", "tutor", "parent", minutes=2)
    rows.append(missed)
    feed.interrupt()

    await _wait_for(lambda: subscription.resyncs == 1 and subscription.state == STATE_SYNCED)
    assert subscription.message("m2") == missed
    assert subscription.unread_total == 2
    assert delays == [0.5]
    assert sink.states == [STATE_SYNCED, STATE_DEGRADED, "connecting", STATE_SYNCED]

    subscription.close()
    await task


@pytest.mark.anyio
async def test_repeated_failures_close_the_subscription() -> None:
    delays = []

    async def fake_sleep(delay: float) -> None:
        delays.append(delay)

    def failing_load(user_id: str):
        raise TransientIOError("message log unavailable")

    sink = RecordingSink()
    subscription = _subscription(
        sink,
        load=failing_load,
        initial_delay=0.5,
        max_delay=0.8,
        max_attempts=3,
        sleep=fake_sleep,
    )

    await subscription.run()

    assert delays == [0.5, 0.8, 0.8]
    assert subscription.state == STATE_CLOSED
    assert sink.states[-1] == STATE_CLOSED


@pytest.mark.anyio
async def test_closed_feed_closes_the_subscription() -> None:
    feed = ChangeFeed()
    subscription = _subscription(RecordingSink(), feed=feed)
    task = asyncio.get_running_loop().create_task(subscription.run())
    await _wait_for(lambda: subscription.state == STATE_SYNCED)

    feed.close()
    await task

    assert subscription.state == STATE_CLOSED


@pytest.mark.anyio
async def test_submitted_changes_share_the_event_sequence() -> None:
    feed = ChangeFeed()
    subscription = _subscription(RecordingSink(), feed=feed)
    sent = make_message("m1", "parent", "tutor", minutes=1)
    assert subscription.submit(OptimisticChange(FEED_EVENT_INSERT, (sent,))) is False

    task = asyncio.get_running_loop().create_task(subscription.run())
    await _wait_for(lambda: subscription.state == STATE_SYNCED)

    assert subscription.submit(OptimisticChange(FEED_EVENT_INSERT, (sent,))) is True
    await _wait_for(lambda: subscription.message("m1") is not None)

    subscription.close()
    await task


def test_optimistic_update_cannot_revive_a_deleted_message() -> None:
    subscription = _subscription(RecordingSink())
    message = make_message("m1", "tutor", "parent", minutes=1)
    subscription.load_snapshot([message])

    subscription.apply(event(FEED_EVENT_UPDATE, read(message)))
    subscription.apply(event(FEED_EVENT_DELETE, replace(read(message), deleted_at=at(90))))
    subscription.apply_optimistic(OptimisticChange(FEED_EVENT_UPDATE, (read(message),)))

    assert subscription.conversations() == []
    assert subscription.message("m1") is None
    assert subscription.unread_total == 0


def test_late_optimistic_update_does_not_override_newer_feed_state() -> None:
    subscription = _subscription(RecordingSink())
    message = make_message("m1", "tutor", "parent", minutes=1)
    subscription.load_snapshot([message])

    subscription.apply(event(FEED_EVENT_UPDATE, read(message)))
    subscription.apply(event(FEED_EVENT_UPDATE, message, "marked-unread-again"))
    subscription.apply_optimistic(OptimisticChange(FEED_EVENT_UPDATE, (read(message),)))

    assert subscription.unread_total == 1
    assert subscription.message("m1") == message


def test_late_optimistic_bulk_read_keeps_feed_state() -> None:
    subscription = _subscription(RecordingSink())
    message = make_message("m1", "tutor", "parent", minutes=1)
    subscription.load_snapshot([message])

    subscription.apply(event(FEED_EVENT_UPDATE, read(message)))
    subscription.apply(event(FEED_EVENT_UPDATE, message, "marked-unread-again"))
    subscription.apply_optimistic(OptimisticChange(CHANGE_BULK_READ, (read(message),)))

    assert subscription.unread_total == 1


def test_redelivery_after_delete_is_ignored() -> None:
    subscription = _subscription(RecordingSink())
    message = make_message("m1", "tutor", "parent", minutes=1)
    subscription.load_snapshot([])

    subscription.apply(event(FEED_EVENT_INSERT, message))
    subscription.apply(event(FEED_EVENT_DELETE, replace(message, deleted_at=at(90))))

    assert subscription.apply(event(FEED_EVENT_INSERT, message, "redelivered")) is None
    subscription.apply(event(FEED_EVENT_UPDATE, read(message), "redelivered-update"))
    assert subscription.conversations() == []
    assert subscription.unread_total == 0


def _assert_counters_match_messages(subscription: ConversationSubscription, ids) -> None:
    threads: dict[ConversationKey, list] = {}
    for message_id in ids:
        stored = subscription.message(message_id)
        if stored is not None:
            threads.setdefault(ConversationKey.for_message(stored), []).append(stored)

    assert {conversation.key for conversation in subscription.conversations()} == set(threads)
    for key, messages in threads.items():
        assert subscription.conversation(key).unread_count == unread_count(messages, "parent")
    assert subscription.unread_total == sum(
        unread_count(messages, "parent") for messages in threads.values()
    )
    assert subscription.consistency_violations == 0


@pytest.mark.parametrize("seed", range(8))
def test_unread_counts_survive_random_interleavings(seed: int) -> None:
    rng = random.Random(seed)
    counterparts = ("tutor", "coach", "nurse")
    entities = (None, "s1")

    truth: dict[str, object] = {}
    history: dict[str, list] = {}
    latest_event: dict[str, object] = {}
    delivered: set[str] = set()
    pending: list = []

    def new_message(index: int):
        counterpart = rng.choice(counterparts)
        sender, recipient = (counterpart, "parent") if rng.random() < 0.7 else ("parent", counterpart)
        return make_message(
            f"m{index:03d}", sender, recipient, minutes=index, related_entity_id=rng.choice(entities)
        )

    def commit(feed_events, change) -> None:
        # The command result is queued either right after its echo or just ahead of it.
        if rng.random() < 0.5:
            pending.extend(feed_events)
            pending.append(change)
        else:
            pending.append(change)
            pending.extend(feed_events)

    snapshot = [new_message(index) for index in range(4)]
    for message in snapshot:
        truth[message.id] = message
        history[message.id] = [message]
    subscription = _subscription(RecordingSink())
    subscription.load_snapshot(snapshot)
    ids = [message.id for message in snapshot]

    for step in range(4, 80):
        action = rng.choice(("insert", "insert", "toggle", "toggle", "delete", "duplicate", "stale", "read-all"))
        live = sorted(truth)
        if action == "insert" or not live:
            message = new_message(step)
            ids.append(message.id)
            truth[message.id] = message
            history[message.id] = [message]
            feed_event = event(FEED_EVENT_INSERT, message, f"e{step}")
            latest_event[message.id] = feed_event
            commit([feed_event], OptimisticChange(FEED_EVENT_INSERT, (message,)))
        elif action == "toggle":
            current = truth[rng.choice(live)]
            changed = read(current, step) if not current.is_read else replace(current, is_read=False, read_at=None)
            truth[changed.id] = changed
            history[changed.id].append(changed)
            feed_event = event(FEED_EVENT_UPDATE, changed, f"e{step}")
            latest_event[changed.id] = feed_event
            commit([feed_event], OptimisticChange(FEED_EVENT_UPDATE, (changed,)))
        elif action == "delete":
            current = truth.pop(rng.choice(live))
            gone = replace(current, deleted_at=at(step))
            feed_event = event(FEED_EVENT_DELETE, gone, f"e{step}")
            latest_event[gone.id] = feed_event
            commit([feed_event], OptimisticChange(FEED_EVENT_DELETE, (gone,)))
        elif action == "duplicate" and latest_event:
            pending.append(latest_event[rng.choice(sorted(latest_event))])
        elif action == "stale":
            candidates = sorted(message_id for message_id in delivered if len(history[message_id]) > 1)
            if candidates:
                old = rng.choice(history[rng.choice(candidates)][:-1])
                pending.append(OptimisticChange(FEED_EVENT_UPDATE, (old,)))
        elif action == "read-all":
            rows = []
            feed_events = []
            for message_id in live:
                current = truth[message_id]
                if current.is_unread_for("parent"):
                    changed = read(current, step)
                    truth[message_id] = changed
                    history[message_id].append(changed)
                    feed_event = event(FEED_EVENT_UPDATE, changed, f"e{step}-{message_id}")
                    latest_event[message_id] = feed_event
                    feed_events.append(feed_event)
                    rows.append(changed)
            commit(feed_events, OptimisticChange(CHANGE_BULK_READ, tuple(rows)))

        for _ in range(rng.randint(0, len(pending))):
            item = pending.pop(0)
            if isinstance(item, OptimisticChange):
                subscription.apply_optimistic(item)
            else:
                subscription.apply(item)
                delivered.add(item.row.id)
            _assert_counters_match_messages(subscription, ids)

    while pending:
        item = pending.pop(0)
        if isinstance(item, OptimisticChange):
            subscription.apply_optimistic(item)
        else:
            subscription.apply(item)
        _assert_counters_match_messages(subscription, ids)

    for message_id in ids:
        assert subscription.message(message_id) == truth.get(message_id)
    assert subscription.unread_total == unread_count(truth.values(), "parent")

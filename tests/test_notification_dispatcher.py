from __future__ import annotations

from dataclasses import replace

import pytest

from factories import RecordingSink, make_message

from app.application.use_cases.notifications import (
    build_gamification_notification,
    build_message_notification,
    notify_gamification_event,
    notify_message_received,
    report_gamification_event,
)
from app.domain.entities import (
    MESSAGE_PRIORITY_HIGH,
    MESSAGE_TYPE_ANNOUNCEMENT,
    NOTIFICATION_ANNOUNCEMENT,
    NOTIFICATION_BADGE_EARNED,
    NOTIFICATION_BEHAVIOR_LOGGED,
    NOTIFICATION_MESSAGE,
    NOTIFICATION_MILESTONE_ACHIEVED,
    NOTIFICATION_REWARD_REDEEMED,
    NOTIFICATION_STREAK_BROKEN,
    URGENCY_INFO,
    URGENCY_SUCCESS,
    URGENCY_WARNING,
    GamificationEvent,
)
from app.domain.errors import DuplicateNotificationError, MessagingError, ValidationError
from app.infrastructure.repositories import MessageRepository, NotificationRepository


def test_message_notification_texts() -> None:
    about_student = build_message_notification(
        make_message("m1", "tutor", "parent", related_entity_id="Ana")
    )
    general = build_message_notification(make_message("m2", "tutor", "parent"))
    announcement = build_message_notification(
        make_message("m3", "principal", "parent", message_type=MESSAGE_TYPE_ANNOUNCEMENT, subject="Field trip")
    )

    assert about_student.type == NOTIFICATION_MESSAGE
    assert about_student.user_id == "parent"
    assert about_student.content == "New message from tutor about Ana"
    assert about_student.source_event_id == "message:m1"
    assert general.content == "New message from tutor"
    assert announcement.type == NOTIFICATION_ANNOUNCEMENT
    assert announcement.content == "New announcement: Field trip"
    assert announcement.urgency == URGENCY_INFO


def test_high_priority_messages_are_warnings() -> None:
    notification = build_message_notification(
        make_message("m1", "tutor", "parent", priority=MESSAGE_PRIORITY_HIGH)
    )

    assert notification.urgency == URGENCY_WARNING


@pytest.mark.parametrize(
    ("kind", "data", "content", "urgency"),
    [
        (
            NOTIFICATION_BEHAVIOR_LOGGED,
            {"student_name": "Ana", "points": 5, "behavior_name": "Helping others"},
            "Ana earned 5 points for Helping others",
            URGENCY_INFO,
        ),
        (
            NOTIFICATION_REWARD_REDEEMED,
            {"student_name": "Ana", "reward_name": "Extra recess"},
            "Ana earned the reward: Extra recess",
            URGENCY_INFO,
        ),
        (
            NOTIFICATION_BADGE_EARNED,
            {"student_name": "Ana", "badge_name": "Kindness"},
            "Ana earned a new badge: Kindness",
            URGENCY_SUCCESS,
        ),
        (
            NOTIFICATION_MILESTONE_ACHIEVED,
            {"student_name": "Ana", "milestone": "100 points"},
            "Ana reached 100 points",
            URGENCY_SUCCESS,
        ),
        (
            NOTIFICATION_STREAK_BROKEN,
            {"student_name": "Ana", "streak_days": 7},
            "Ana's 7-day streak has ended",
            URGENCY_WARNING,
        ),
    ],
)
def test_gamification_classification(kind, data, content, urgency) -> None:
    notification = build_gamification_notification(
        GamificationEvent(source_event_id="evt-1", user_id="parent", kind=kind, data=data)
    )

    assert notification.type == kind
    assert notification.content == content
    assert notification.urgency == urgency
    assert notification.related_data == data


def test_unknown_gamification_kind_is_rejected() -> None:
    with pytest.raises(ValidationError):
        build_gamification_notification(
            GamificationEvent(source_event_id="evt-1", user_id="parent", kind="level_up")
        )


def test_redelivered_message_produces_one_notification(db_session) -> None:
    sink = RecordingSink()
    message = MessageRepository(db_session).insert(
        replace(make_message("", "tutor", "parent"), id=None)
    )

    first = notify_message_received(db_session, message=message, publisher=sink)
    second = notify_message_received(db_session, message=message, publisher=sink)

    assert first is not None
    assert second is None
    assert sink.notifications == [first]
    items, total = NotificationRepository(db_session).list_for_user("parent")
    assert total == 1
    assert items[0].source_event_id == f"message:{message.id}"
    assert items[0].is_read is False


def test_same_source_for_different_users_is_not_a_duplicate(db_session) -> None:
    sink = RecordingSink()
    for user_id in ("parent", "guardian"):
        notify_gamification_event(
            db_session,
            event=GamificationEvent(
                source_event_id="badge-1",
                user_id=user_id,
                kind=NOTIFICATION_BADGE_EARNED,
                data={"student_name": "Ana", "badge_name": "Kindness"},
            ),
            publisher=sink,
        )

    assert len(sink.notifications) == 2


def test_report_gamification_event_reports_repeats(db_session) -> None:
    sink = RecordingSink()
    event = GamificationEvent(
        source_event_id="behavior-9",
        user_id="parent",
        kind=NOTIFICATION_BEHAVIOR_LOGGED,
        data={"student_name": "Ana", "points": 2, "behavior_name": "Reading"},
    )

    created, was_created = report_gamification_event(db_session, event=event, publisher=sink)
    repeated, was_repeated = report_gamification_event(db_session, event=event, publisher=sink)

    assert was_created is True
    assert was_repeated is False
    assert repeated.id == created.id
    assert len(sink.notifications) == 1


def test_repository_rejects_a_taken_dedup_key(db_session) -> None:
    repository = NotificationRepository(db_session)
    notification = build_gamification_notification(
        GamificationEvent(
            source_event_id="badge-7",
            user_id="parent",
            kind=NOTIFICATION_BADGE_EARNED,
            data={"student_name": "Ana", "badge_name": "Helper"},
        )
    )
    repository.create(notification)

    with pytest.raises(DuplicateNotificationError) as excinfo:
        repository.create(notification)

    assert isinstance(excinfo.value, MessagingError)
    assert repository.count_unread("parent") == 1

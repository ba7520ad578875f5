"""Integration tests for the messaging and conversation endpoints."""

from __future__ import annotations

import pytest

pytest.importorskip("fastapi")
from fastapi.testclient import TestClient

TUTOR = {"X-User-Id": "tutor-1"}
PARENT = {"X-User-Id": "parent-1"}
OUTSIDER = {"X-User-Id": "stranger"}


def _send(client: TestClient, headers: dict[str, str], **payload) -> dict:
    response = client.post("/messages", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def test_health(client: TestClient) -> None:
    assert client.get("/health").json() == {"status": "ok"}


def test_acting_user_is_required(client: TestClient) -> None:
    response = client.post("/messages", json={"recipient_id": "parent-1", "content": "Hi"})

    assert response.status_code == 401


def test_invalid_messages_are_rejected(client: TestClient) -> None:
    to_self = client.post(
        "/messages", json={"recipient_id": "tutor-1", "content": "Hi"}, headers=TUTOR
    )
    assert to_self.status_code == 400
    assert to_self.json()["detail"] == "Messages cannot be sent to yourself"

    too_long = client.post(
        "/messages", json={"recipient_id": "parent-1", "content": "x" * 2001}, headers=TUTOR
    )
    assert too_long.status_code == 400

    blank = client.post(
        "/messages", json={"recipient_id": "parent-1", "content": "   "}, headers=TUTOR
    )
    assert blank.status_code == 400

    bad_type = client.post(
        "/messages",
        json={"recipient_id": "parent-1", "content": "Hi", "message_type": "gossip"},
        headers=TUTOR,
    )
    assert bad_type.status_code == 400


def test_message_lifecycle(client: TestClient) -> None:
    first = _send(
        client,
        TUTOR,
        recipient_id="parent-1",
        content="Ana did great today",
        related_entity_id="student-ana",
    )
    _send(client, TUTOR, recipient_id="parent-1", content="Reminder: field trip", priority="high")
    reply = _send(
        client, PARENT, recipient_id="tutor-1", content="Thanks!", related_entity_id="student-ana"
    )
    assert first["sender_id"] == "tutor-1"
    assert first["is_read"] is False

    inbox = client.get("/messages", headers=PARENT).json()
    assert inbox["total"] == 2
    assert inbox["total_pages"] == 1
    sent = client.get("/messages", params={"box": "sent"}, headers=PARENT).json()
    assert [item["id"] for item in sent["items"]] == [reply["id"]]
    unread = client.get("/messages", params={"box": "all", "is_read": False}, headers=PARENT).json()
    assert unread["total"] == 3

    conversations = client.get("/conversations", headers=PARENT).json()
    assert len(conversations) == 2
    by_entity = {conversation["related_entity_id"]: conversation for conversation in conversations}
    ana_thread = by_entity["student-ana"]
    assert ana_thread["participant_ids"] == ["parent-1", "tutor-1"]
    assert ana_thread["message_count"] == 2
    assert ana_thread["unread_count"] == 1
    assert ana_thread["last_message"]["id"] == reply["id"]

    thread = client.get(f"/conversations/{ana_thread['id']}/messages", headers=PARENT).json()
    assert [message["id"] for message in thread] == [first["id"], reply["id"]]

    forbidden = client.patch(f"/messages/{first['id']}/read", headers=TUTOR)
    assert forbidden.status_code == 403

    marked = client.patch(f"/messages/{first['id']}/read", json={"is_read": True}, headers=PARENT)
    assert marked.status_code == 200
    assert marked.json()["is_read"] is True
    assert marked.json()["read_at"] is not None

    read_all = client.post("/messages/read-all", headers=PARENT)
    assert read_all.json() == {"updated": 1}
    unread_only = client.get("/conversations", params={"unread_only": True}, headers=PARENT).json()
    assert unread_only == []

    assert client.delete(f"/messages/{first['id']}", headers=OUTSIDER).status_code == 403
    assert client.delete(f"/messages/{first['id']}", headers=TUTOR).status_code == 204
    assert client.delete(f"/messages/{first['id']}", headers=TUTOR).status_code == 404

    thread = client.get(f"/conversations/{ana_thread['id']}/messages", headers=PARENT).json()
    assert [message["id"] for message in thread] == [reply["id"]]


def test_scoped_read_all(client: TestClient) -> None:
    _send(client, TUTOR, recipient_id="parent-1", content="About Ana", related_entity_id="ana")
    _send(client, TUTOR, recipient_id="parent-1", content="About Ben", related_entity_id="ben")
    _send(client, {"X-User-Id": "coach"}, recipient_id="parent-1", content="Practice")

    response = client.post(
        "/messages/read-all", json={"related_entity_id": "ana"}, headers=PARENT
    )
    assert response.json() == {"updated": 1}

    response = client.post("/messages/read-all", json={"counterpart_id": "coach"}, headers=PARENT)
    assert response.json() == {"updated": 1}

    remaining = client.get("/conversations", params={"unread_only": True}, headers=PARENT).json()
    assert [conversation["related_entity_id"] for conversation in remaining] == ["ben"]

    response = client.post(
        "/messages/read-all", json={"conversation_id": remaining[0]["id"]}, headers=PARENT
    )
    assert response.json() == {"updated": 1}


def test_search_and_filters(client: TestClient) -> None:
    _send(client, TUTOR, recipient_id="parent-1", content="Field trip on Friday")
    _send(
        client,
        TUTOR,
        recipient_id="parent-1",
        content="School closed",
        subject="Weather",
        message_type="announcement",
    )
    _send(client, PARENT, recipient_id="tutor-1", content="Is the field trip paid?")

    found = client.get("/messages/search", params={"q": "FIELD trip"}, headers=PARENT).json()
    assert len(found) == 2
    assert found[0]["content"] == "Is the field trip paid?"

    announcements = client.get(
        "/messages", params={"message_type": "announcement"}, headers=PARENT
    ).json()
    assert [item["subject"] for item in announcements["items"]] == ["Weather"]

    page = client.get("/messages", params={"limit": 1, "page": 2}, headers=PARENT).json()
    assert page["total"] == 2
    assert page["total_pages"] == 2
    assert len(page["items"]) == 1

    assert client.get("/messages", params={"box": "archive"}, headers=PARENT).status_code == 400
    assert client.get("/conversations", params={"sort_by": "name"}, headers=PARENT).status_code == 400
    assert client.get("/conversations/unknown/messages", headers=PARENT).status_code == 404

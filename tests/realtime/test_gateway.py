# tests/realtime/test_gateway.py
"""Tests for the realtime chat gateway."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Callable

import pytest
from fastapi import WebSocketDisconnect
from starlette.websockets import WebSocketState

from messaging_backend.models import Message, User
from messaging_backend.realtime import ChatGateway
from messaging_backend.realtime.gateway import BINARY_FRAME_MESSAGE, SUPERSEDED_CLOSE_CODE


class FakeWebSocket:
    """In-memory stand-in for a Starlette WebSocket."""

    def __init__(self) -> None:
        self.inbox: asyncio.Queue[str | bytes | None] = asyncio.Queue()
        self.sent: list[dict[str, Any]] = []
        self.accepted = False
        self.closed_with: tuple[int, str] | None = None
        self.application_state = WebSocketState.CONNECTING
        self.client_state = WebSocketState.CONNECTING

    async def accept(self) -> None:
        self.accepted = True
        self.application_state = WebSocketState.CONNECTED
        self.client_state = WebSocketState.CONNECTED

    async def send_text(self, data: str) -> None:
        if self.application_state != WebSocketState.CONNECTED:
            raise RuntimeError("socket is not connected")
        self.sent.append(json.loads(data))

    async def receive(self) -> dict[str, Any]:
        item = await self.inbox.get()
        if item is None:
            self.client_state = WebSocketState.DISCONNECTED
            return {"type": "websocket.disconnect", "code": 1000}
        if isinstance(item, bytes):
            return {"type": "websocket.receive", "bytes": item}
        return {"type": "websocket.receive", "text": item}

    async def close(self, code: int = 1000, reason: str | None = None) -> None:
        self.closed_with = (code, reason or "")
        self.application_state = WebSocketState.DISCONNECTED
        self.inbox.put_nowait(None)

    def push(self, frame: dict[str, Any] | str | bytes) -> None:
        self.inbox.put_nowait(frame if isinstance(frame, (str, bytes)) else json.dumps(frame))

    def hang_up(self) -> None:
        self.inbox.put_nowait(None)

    def types(self) -> list[str]:
        return [event["type"] for event in self.sent]


async def _until(predicate: Callable[[], bool], attempts: int = 200) -> None:
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


async def _open(gateway, db, token):
    ws = FakeWebSocket()
    task = asyncio.create_task(gateway.serve(ws, db, token))
    await _until(lambda: bool(ws.sent) or ws.closed_with is not None or task.done())
    return ws, task


async def _close(ws, task) -> None:
    ws.hang_up()
    await asyncio.wait_for(task, timeout=5)


def _send_frame(receiver_id: str, content: str = "hello", **extra: Any) -> dict[str, Any]:
    return {"type": "SEND_MESSAGE", "receiverId": receiver_id, "content": content, **extra}


@pytest.mark.asyncio
async def test_connect_announces_identity_and_marks_online(db_session, alice) -> None:
    gateway = ChatGateway()
    ws, task = await _open(gateway, db_session, alice.token)

    assert ws.accepted
    assert ws.sent == [{"type": "CONNECTION_ESTABLISHED", "userId": alice.user.id}]
    assert alice.user.id in gateway.registry
    assert db_session.get(User, alice.user.id).is_online is True

    await _close(ws, task)

    assert alice.user.id not in gateway.registry
    user = db_session.get(User, alice.user.id)
    assert user.is_online is False
    assert user.last_seen is not None


@pytest.mark.asyncio
@pytest.mark.parametrize("token", [None, "", "not-a-token"])
async def test_invalid_token_is_rejected_before_accept(db_session, token) -> None:
    gateway = ChatGateway()
    ws = FakeWebSocket()

    await gateway.serve(ws, db_session, token)

    assert not ws.accepted
    assert ws.closed_with == (1008, "Invalid token")
    assert ws.sent == []
    assert len(gateway.registry) == 0


@pytest.mark.asyncio
async def test_token_for_deleted_user_is_rejected(db_session, token_service) -> None:
    gateway = ChatGateway()
    ws = FakeWebSocket()

    await gateway.serve(ws, db_session, token_service.issue("ghost", "no-such-user"))

    assert ws.closed_with == (1008, "Invalid token")
    assert len(gateway.registry) == 0


@pytest.mark.asyncio
async def test_online_receiver_gets_exactly_one_push(db_session, alice, bob) -> None:
    gateway = ChatGateway()
    ws_bob, task_bob = await _open(gateway, db_session, bob.token)
    ws_alice, task_alice = await _open(gateway, db_session, alice.token)

    ws_alice.push(_send_frame(bob.user.id))
    await _until(lambda: "MESSAGE_SENT" in ws_alice.types())
    await _close(ws_alice, task_alice)

    assert ws_bob.types() == ["CONNECTION_ESTABLISHED", "NEW_MESSAGE"]
    assert ws_alice.types() == ["CONNECTION_ESTABLISHED", "MESSAGE_SENT"]

    pushed = ws_bob.sent[1]["message"]
    confirmed = ws_alice.sent[1]["message"]
    assert pushed["id"] == confirmed["id"]
    assert pushed["senderId"] == alice.user.id
    assert pushed["receiverId"] == bob.user.id
    assert pushed["content"] == "hello"
    assert pushed["type"] == "TEXT"

    stored = db_session.get(Message, pushed["id"])
    assert stored.is_delivered is True
    assert stored.is_read is False

    await _close(ws_bob, task_bob)


@pytest.mark.asyncio
async def test_offline_receiver_message_is_stored(db_session, alice, bob) -> None:
    gateway = ChatGateway()
    ws, task = await _open(gateway, db_session, alice.token)

    ws.push(_send_frame(bob.user.id, content="later", messageType="IMAGE"))
    await _until(lambda: len(ws.sent) == 2)
    await _close(ws, task)

    assert ws.types() == ["CONNECTION_ESTABLISHED", "MESSAGE_SENT"]
    message_id = ws.sent[1]["message"]["id"]
    stored = db_session.get(Message, message_id)
    assert stored.content == "later"
    assert stored.type.value == "IMAGE"
    assert stored.is_delivered is False


@pytest.mark.asyncio
async def test_malformed_frame_reports_error_and_keeps_connection(db_session, alice, bob) -> None:
    gateway = ChatGateway()
    ws, task = await _open(gateway, db_session, alice.token)

    ws.push("{not json")
    ws.push(_send_frame(bob.user.id))
    await _until(lambda: len(ws.sent) == 3)
    await _close(ws, task)

    assert ws.types() == ["CONNECTION_ESTABLISHED", "ERROR", "MESSAGE_SENT"]
    assert ws.sent[1]["message"] == "Malformed event payload"


@pytest.mark.asyncio
async def test_unknown_event_type_is_ignored(db_session, alice) -> None:
    gateway = ChatGateway()
    ws, task = await _open(gateway, db_session, alice.token)

    ws.push({"type": "TYPING", "receiverId": "someone"})
    await _close(ws, task)

    assert ws.types() == ["CONNECTION_ESTABLISHED"]


@pytest.mark.asyncio
async def test_client_cannot_choose_sender(db_session, alice, bob) -> None:
    gateway = ChatGateway()
    ws, task = await _open(gateway, db_session, alice.token)

    ws.push(_send_frame(alice.user.id, senderId=bob.user.id))
    await _until(lambda: len(ws.sent) == 2)
    await _close(ws, task)

    assert ws.types() == ["CONNECTION_ESTABLISHED", "ERROR"]
    assert "senderId" in ws.sent[1]["message"]
    assert db_session.query(Message).count() == 0


@pytest.mark.asyncio
async def test_blank_content_reports_error(db_session, alice, bob) -> None:
    gateway = ChatGateway()
    ws, task = await _open(gateway, db_session, alice.token)

    ws.push(_send_frame(bob.user.id, content="  "))
    await _until(lambda: len(ws.sent) == 2)
    await _close(ws, task)

    assert ws.sent[1] == {"type": "ERROR", "message": "Message content must not be blank"}
    assert db_session.query(Message).count() == 0


@pytest.mark.asyncio
async def test_new_connection_supersedes_old_one(db_session, alice) -> None:
    gateway = ChatGateway()
    ws_old, task_old = await _open(gateway, db_session, alice.token)
    ws_new, task_new = await _open(gateway, db_session, alice.token)

    await asyncio.wait_for(task_old, timeout=5)

    assert ws_old.closed_with is not None
    assert ws_old.closed_with[0] == SUPERSEDED_CLOSE_CODE
    registered = await gateway.registry.lookup(alice.user.id)
    assert registered is not None and registered.websocket is ws_new
    # The displaced socket's teardown leaves presence alone.
    assert db_session.get(User, alice.user.id).is_online is True

    await _close(ws_new, task_new)
    assert db_session.get(User, alice.user.id).is_online is False


@pytest.mark.asyncio
async def test_push_to_superseded_socket_goes_to_newest(db_session, alice, bob) -> None:
    gateway = ChatGateway()
    ws_bob_old, task_bob_old = await _open(gateway, db_session, bob.token)
    ws_bob_new, task_bob_new = await _open(gateway, db_session, bob.token)
    await asyncio.wait_for(task_bob_old, timeout=5)
    ws_alice, task_alice = await _open(gateway, db_session, alice.token)

    ws_alice.push(_send_frame(bob.user.id))
    await _until(lambda: "MESSAGE_SENT" in ws_alice.types())
    await _close(ws_alice, task_alice)

    assert "NEW_MESSAGE" not in ws_bob_old.types()
    assert ws_bob_new.types().count("NEW_MESSAGE") == 1

    await _close(ws_bob_new, task_bob_new)


class DeadOnArrivalWebSocket(FakeWebSocket):
    """Socket whose peer vanishes right after the handshake."""

    async def send_text(self, data: str) -> None:
        raise RuntimeError("peer went away")


@pytest.mark.asyncio
async def test_failed_acknowledgment_still_tears_down(db_session, alice) -> None:
    gateway = ChatGateway()
    ws = DeadOnArrivalWebSocket()

    await asyncio.wait_for(gateway.serve(ws, db_session, alice.token), timeout=5)

    assert ws.accepted
    assert len(gateway.registry) == 0
    assert db_session.get(User, alice.user.id).is_online is False


@pytest.mark.asyncio
async def test_binary_frame_reports_error_and_keeps_connection(db_session, alice, bob) -> None:
    gateway = ChatGateway()
    ws, task = await _open(gateway, db_session, alice.token)

    ws.push(b"\x00\x01garbage")
    ws.push(_send_frame(bob.user.id))
    await _until(lambda: len(ws.sent) == 3)

    assert alice.user.id in gateway.registry
    await _close(ws, task)

    assert ws.types() == ["CONNECTION_ESTABLISHED", "ERROR", "MESSAGE_SENT"]
    assert ws.sent[1]["message"] == BINARY_FRAME_MESSAGE


@pytest.mark.asyncio
async def test_unexpected_failure_closes_socket(db_session, alice, monkeypatch) -> None:
    gateway = ChatGateway()

    async def _explode(conn, db, raw):
        raise LookupError("boom")

    monkeypatch.setattr(gateway, "dispatch", _explode)
    ws, task = await _open(gateway, db_session, alice.token)

    ws.push({"type": "SEND_MESSAGE"})
    await asyncio.wait_for(task, timeout=5)

    assert ws.closed_with == (1011, "Internal error")
    assert len(gateway.registry) == 0
    assert db_session.get(User, alice.user.id).is_online is False


def test_websocket_rejects_invalid_token(client) -> None:
    with pytest.raises(WebSocketDisconnect) as excinfo:
        with client.websocket_connect("/ws/chat?token=garbage") as ws:
            ws.receive_json()
    assert excinfo.value.code == 1008


def test_websocket_exchange(client, alice, bob) -> None:
    with client.websocket_connect(f"/ws/chat?token={bob.token}") as bob_ws:
        assert bob_ws.receive_json() == {"type": "CONNECTION_ESTABLISHED", "userId": bob.user.id}
        with client.websocket_connect(f"/ws/chat?token={alice.token}") as alice_ws:
            assert alice_ws.receive_json()["type"] == "CONNECTION_ESTABLISHED"

            alice_ws.send_json(_send_frame(bob.user.id, content="over the wire"))

            pushed = bob_ws.receive_json()
            assert pushed["type"] == "NEW_MESSAGE"
            assert pushed["message"]["content"] == "over the wire"
            assert alice_ws.receive_json()["type"] == "MESSAGE_SENT"


def test_websocket_survives_binary_frame(client, alice, bob) -> None:
    with client.websocket_connect(f"/ws/chat?token={alice.token}") as ws:
        assert ws.receive_json()["type"] == "CONNECTION_ESTABLISHED"

        ws.send_bytes(b"\x00\x01garbage")
        assert ws.receive_json() == {"type": "ERROR", "message": BINARY_FRAME_MESSAGE}

        ws.send_json(_send_frame(bob.user.id))
        assert ws.receive_json()["type"] == "MESSAGE_SENT"

import asyncio
import json

import pytest
from starlette.websockets import WebSocketDisconnect

from ecofinds.models.chat import Message
from ecofinds.models.product import ProductStatus
from ecofinds.models.report import Report, ReportType
from ecofinds.services.auth_service import issue_token_for
from ecofinds.websocket import chat as chat_ws


def _open_room(client, headers, buyer, product):
    r = client.post(
        "/chat/room",
        json={"product_id": product.id, "seller_id": product.seller_id},
        headers=headers(buyer),
    )
    assert r.status_code == 200, r.text
    return r.json()["data"]["room"]


def _send(client, headers, user, room_id, text):
    return client.post(
        f"/chat/room/{room_id}/message", json={"message": text}, headers=headers(user)
    )


def test_room_get_or_create_is_idempotent(client, make_user, make_product, headers):
    seller = make_user()
    buyer = make_user()
    product = make_product(seller)

    first = _open_room(client, headers, buyer, product)
    second = _open_room(client, headers, buyer, product)
    assert first["id"] == second["id"]
    assert first["other_user"]["id"] == seller.id
    assert first["product"]["title"] == product.title


def test_room_rules(client, make_user, make_product, headers):
    seller = make_user()
    buyer = make_user()
    product = make_product(seller)
    pending = make_product(seller, status=ProductStatus.PENDING)

    r = client.post(
        "/chat/room",
        json={"product_id": product.id, "seller_id": seller.id},
        headers=headers(seller),
    )
    assert r.status_code == 409

    r = client.post(
        "/chat/room",
        json={"product_id": pending.id, "seller_id": seller.id},
        headers=headers(buyer),
    )
    assert r.status_code == 404

    r = client.post(
        "/chat/room",
        json={"product_id": product.id, "seller_id": buyer.id},
        headers=headers(make_user()),
    )
    assert r.status_code == 404


def test_non_participant_cannot_send(client, make_user, make_product, headers, db_session):
    seller = make_user()
    buyer = make_user()
    intruder = make_user()
    room = _open_room(client, headers, buyer, make_product(seller))

    r = _send(client, headers, intruder, room["id"], "hello?")
    assert r.status_code == 403
    assert db_session.query(Message).count() == 0

    assert _send(client, headers, buyer, 999, "hi").status_code == 404


def test_blank_message_rejected(client, make_user, make_product, headers):
    seller = make_user()
    buyer = make_user()
    room = _open_room(client, headers, buyer, make_product(seller))
    r = _send(client, headers, buyer, room["id"], "   ")
    assert r.status_code == 400
    assert r.json()["errors"][0]["message"] == "Message cannot be empty"


def test_send_read_and_unread_counts(client, make_user, make_product, headers):
    seller = make_user()
    buyer = make_user()
    room = _open_room(client, headers, buyer, make_product(seller))

    assert _send(client, headers, buyer, room["id"], "Is it available?").status_code == 201
    assert _send(client, headers, buyer, room["id"], "Can you do 1200?").status_code == 201

    unread = client.get("/chat/unread-count", headers=headers(seller)).json()["data"]
    assert unread == {"count": 2}

    rooms = client.get("/chat/rooms", headers=headers(seller)).json()["data"]["rooms"]
    assert len(rooms) == 1
    assert rooms[0]["unread_count"] == 2
    assert rooms[0]["last_message"]["message"] == "Can you do 1200?"
    assert rooms[0]["other_user"]["id"] == buyer.id

    page = client.get(
        f"/chat/room/{room['id']}/messages", headers=headers(seller)
    ).json()["data"]
    assert [m["message"] for m in page["messages"]] == ["Is it available?", "Can you do 1200?"]

    assert client.get("/chat/unread-count", headers=headers(seller)).json()["data"] == {"count": 0}
    # the sender's own messages never count as unread for them
    assert client.get("/chat/unread-count", headers=headers(buyer)).json()["data"] == {"count": 0}


def test_explicit_mark_read(client, make_user, make_product, headers):
    seller = make_user()
    buyer = make_user()
    room = _open_room(client, headers, buyer, make_product(seller))
    first = _send(client, headers, buyer, room["id"], "one").json()["data"]["message"]
    _send(client, headers, buyer, room["id"], "two")

    r = client.put(
        f"/chat/room/{room['id']}/read",
        json={"message_ids": [first["id"]]},
        headers=headers(seller),
    )
    assert r.json()["data"] == {"updated": 1}
    assert client.get("/chat/unread-count", headers=headers(seller)).json()["data"] == {"count": 1}

    r = client.put(f"/chat/room/{room['id']}/read", headers=headers(seller))
    assert r.json()["data"] == {"updated": 1}


def test_broadcast_failure_does_not_fail_send(
    client, make_user, make_product, headers, monkeypatch, db_session
):
    from ecofinds.routers import chat as chat_router

    async def _broken(room_id, message):
        raise RuntimeError("socket gone")

    monkeypatch.setattr(chat_router, "broadcast_message", _broken)
    seller = make_user()
    buyer = make_user()
    room = _open_room(client, headers, buyer, make_product(seller))

    r = _send(client, headers, buyer, room["id"], "still delivered")
    assert r.status_code == 201
    assert db_session.query(Message).count() == 1


def test_delete_own_message_only(client, make_user, make_product, headers):
    seller = make_user()
    buyer = make_user()
    room = _open_room(client, headers, buyer, make_product(seller))
    message = _send(client, headers, buyer, room["id"], "oops").json()["data"]["message"]

    assert client.delete(f"/chat/message/{message['id']}", headers=headers(seller)).status_code == 404
    assert client.delete(f"/chat/message/{message['id']}", headers=headers(buyer)).status_code == 200


def test_report_message_targets_other_participant(
    client, make_user, make_product, headers, db_session
):
    seller = make_user()
    buyer = make_user()
    room = _open_room(client, headers, buyer, make_product(seller))
    message = _send(client, headers, buyer, room["id"], "buy outside the app").json()["data"]["message"]

    r = client.post(
        f"/chat/message/{message['id']}/report",
        json={"reason": "fraud", "description": "asks for offline payment"},
        headers=headers(seller),
    )
    assert r.status_code == 201, r.text
    report = db_session.query(Report).one()
    assert report.report_type == ReportType.MESSAGE
    assert report.reported_user_id == buyer.id

    outsider = make_user()
    r = client.post(
        f"/chat/message/{message['id']}/report",
        json={"reason": "spam"},
        headers=headers(outsider),
    )
    assert r.status_code == 404


def test_websocket_requires_token(client):
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect("/ws/chat?token=bad") as ws:
            ws.receive_json()
    assert exc.value.code == 4401


def test_websocket_subscribe_checks_participation(client, make_user, make_product, headers):
    seller = make_user()
    buyer = make_user()
    intruder = make_user()
    room = _open_room(client, headers, buyer, make_product(seller))

    with client.websocket_connect(f"/ws/chat?token={issue_token_for(seller)}") as ws:
        ws.send_json({"type": "subscribe", "room_id": room["id"]})
        assert ws.receive_json() == {"type": "subscribed", "room_id": room["id"]}
        ws.send_json({"type": "unsubscribe", "room_id": room["id"]})
        assert ws.receive_json() == {"type": "unsubscribed", "room_id": room["id"]}

    with client.websocket_connect(f"/ws/chat?token={issue_token_for(intruder)}") as ws:
        ws.send_json({"type": "subscribe", "room_id": room["id"]})
        frame = ws.receive_json()
        assert frame["type"] == "error"
        assert frame["message"] == "Access denied to this chat room"

        ws.send_json({"type": "subscribe"})
        assert ws.receive_json()["message"] == "room_id is required"

    assert room["id"] not in chat_ws.manager.by_room


class _FakeSocket:
    def __init__(self, broken=False):
        self.sent = []
        self.broken = broken

    async def accept(self):
        pass

    async def send_text(self, text):
        if self.broken:
            raise RuntimeError("closed")
        self.sent.append(json.loads(text))


def test_manager_fans_out_and_drops_dead_sockets():
    manager = chat_ws.ConnectionManager()
    alive, dead, other_room = _FakeSocket(), _FakeSocket(broken=True), _FakeSocket()

    async def scenario():
        for ws in (alive, dead, other_room):
            await manager.connect(ws)
        manager.subscribe(10, alive)
        manager.subscribe(10, dead)
        manager.subscribe(11, other_room)
        await manager.send_to_room(10, {"type": "ping"})

    asyncio.run(scenario())

    assert alive.sent == [{"type": "ping"}]
    assert other_room.sent == []
    assert manager.by_room[10] == {alive}

    manager.disconnect(alive)
    assert 10 not in manager.by_room
    assert manager.by_room == {11: {other_room}}


def test_malformed_read_frame_gets_error_frame(client, make_user, make_product, headers):
    seller = make_user()
    buyer = make_user()
    room = _open_room(client, headers, buyer, make_product(seller))
    _send(client, headers, buyer, room["id"], "hello")

    with client.websocket_connect(f"/ws/chat?token={issue_token_for(seller)}") as ws:
        ws.send_json({"type": "subscribe", "room_id": room["id"]})
        ws.receive_json()
        ws.send_json({"type": "read", "room_id": room["id"], "message_ids": "abc"})
        frame = ws.receive_json()
        assert frame["type"] == "error"
        assert frame["errors"][0]["field"] == "message_ids"

        # the connection survives the bad frame
        ws.send_json({"type": "read", "room_id": room["id"]})
        assert ws.receive_json()["updated"] == 1

    assert room["id"] not in chat_ws.manager.by_room


def test_socket_unregistered_when_handler_fails(
    client, make_user, make_product, headers, monkeypatch
):
    seller = make_user()
    buyer = make_user()
    room = _open_room(client, headers, buyer, make_product(seller))

    def _fail(self, user, room_id, message_ids=None):
        raise RuntimeError("database went away")

    monkeypatch.setattr(chat_ws.ChatService, "mark_read", _fail)

    with pytest.raises(RuntimeError):
        with client.websocket_connect(f"/ws/chat?token={issue_token_for(seller)}") as ws:
            ws.send_json({"type": "subscribe", "room_id": room["id"]})
            ws.receive_json()
            ws.send_json({"type": "read", "room_id": room["id"]})
            ws.receive_json()

    assert room["id"] not in chat_ws.manager.by_room


def test_websocket_message_and_read_frames(
    client, make_user, make_product, headers, db_session
):
    seller = make_user()
    buyer = make_user()
    room = _open_room(client, headers, buyer, make_product(seller))

    with client.websocket_connect(f"/ws/chat?token={issue_token_for(buyer)}") as ws:
        ws.send_json({"type": "subscribe", "room_id": room["id"]})
        ws.receive_json()

        ws.send_json({"type": "message", "room_id": room["id"], "message": "  "})
        assert ws.receive_json()["type"] == "error"

        ws.send_json({"type": "message", "room_id": room["id"], "message": "Over the socket"})
        event = ws.receive_json()
        assert event["type"] == "new_message"
        assert event["message"]["sender_id"] == buyer.id

        ws.send_json({"type": "bogus", "room_id": room["id"]})
        assert ws.receive_json()["type"] == "error"

        ws.send_text("not json")
        assert ws.receive_json()["type"] == "error"

    assert db_session.query(Message).count() == 1

    with client.websocket_connect(f"/ws/chat?token={issue_token_for(seller)}") as ws:
        ws.send_json({"type": "subscribe", "room_id": room["id"]})
        ws.receive_json()
        ws.send_json({"type": "read", "room_id": room["id"]})
        receipt = ws.receive_json()
        assert receipt["type"] == "read_receipt"
        assert receipt["updated"] == 1
        assert receipt["by"] == seller.id

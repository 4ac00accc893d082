"""
tests.test_relay_ws
~~~~~~~~~~~~~~~~~~~

``/ws`` 端点集成测试 —— 使用 FastAPI TestClient 建立真实的 WebSocket 会话。
"""
from __future__ import annotations

from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from app.main import app
from app.services.admin_channel import RESET_CLOSE_CODE


def send(ws, event: str, **data: object) -> None:
    ws.send_json({"event": event, "data": data})


def join(ws, room: str) -> None:
    send(ws, "join-room", room=room)
    assert ws.receive_json() == {"event": "room-joined", "data": {"room": room}}


@pytest.fixture()
def client() -> Iterator[TestClient]:
    with TestClient(app) as c:
        yield c


def test_chat_between_room_members(client: TestClient) -> None:
    with client.websocket_connect("/ws") as alice, client.websocket_connect("/ws") as bob:
        join(alice, "lobby")
        join(bob, "lobby")

        send(alice, "chat-message", room="lobby", nickname="alice", message="hi bob")
        assert bob.receive_json() == {
            "event": "chat-message",
            "data": {"nickname": "alice", "message": "hi bob"},
        }

        send(bob, "image-message", room="lobby", nickname="bob", image="data:image/png;base64,AAAA")
        assert alice.receive_json() == {
            "event": "image-message",
            "data": {"nickname": "bob", "image": "data:image/png;base64,AAAA"},
        }


def test_malformed_frame_gets_error_and_connection_survives(client: TestClient) -> None:
    with client.websocket_connect("/ws") as ws:
        ws.send_text("{not json")
        reply = ws.receive_json()
        assert reply["event"] == "error"

        send(ws, "chat-message", room="lobby", nickname="x")
        assert ws.receive_json()["event"] == "error"

        join(ws, "lobby")


def test_binary_frame_gets_error_and_connection_survives(client: TestClient) -> None:
    system = app.state.relay_system

    with client.websocket_connect("/ws") as ws:
        ws.send_bytes(b"\x00\x01")
        assert ws.receive_json() == {"event": "error", "data": {"message": "仅支持 JSON 文本帧"}}
        assert system.registry.online_count == 1

        join(ws, "lobby")


def test_admin_eavesdrops_and_resets(client: TestClient, admin_secret: str) -> None:
    system = app.state.relay_system

    with client.websocket_connect("/ws") as admin, \
            client.websocket_connect("/ws") as alice, \
            client.websocket_connect("/ws") as bob:
        send(admin, "admin-login", secret="wrong")
        assert admin.receive_json() == {"event": "admin-status", "data": {"authenticated": False}}
        send(admin, "admin-login", secret=admin_secret)
        assert admin.receive_json() == {"event": "admin-status", "data": {"authenticated": True}}

        join(alice, "secret-room")
        join(bob, "secret-room")
        send(alice, "chat-message", room="secret-room", nickname="alice", message="psst")

        assert bob.receive_json()["data"] == {"nickname": "alice", "message": "psst"}
        assert admin.receive_json() == {
            "event": "admin-message-log",
            "data": {"room": "secret-room", "nickname": "alice", "message": "psst", "type": "text"},
        }

        send(admin, "admin-reset", secret=admin_secret)

        for ws in (alice, bob, admin):
            with pytest.raises(WebSocketDisconnect) as exc_info:
                ws.receive_json()
            assert exc_info.value.code == RESET_CLOSE_CODE

        assert system.registry.all_connections() == set()
        assert len(system.observers) == 0


def test_non_admin_cannot_reset(client: TestClient, admin_secret: str) -> None:
    system = app.state.relay_system

    with client.websocket_connect("/ws") as intruder, client.websocket_connect("/ws") as bystander:
        join(bystander, "lobby")
        send(intruder, "admin-reset", secret=admin_secret)

        assert intruder.receive_json() == {"event": "error", "data": {"message": "无权执行重置"}}
        assert system.registry.online_count == 2


def test_disconnect_cleans_registry(client: TestClient, admin_secret: str) -> None:
    system = app.state.relay_system

    with client.websocket_connect("/ws") as ws:
        join(ws, "lobby")
        send(ws, "admin-login", secret=admin_secret)
        ws.receive_json()
        assert system.registry.online_count == 1

    # 服务端在收到断开消息后异步清理，通过新连接的往返确认处理已完成
    with client.websocket_connect("/ws") as probe:
        join(probe, "other")
        assert system.registry.members_of("lobby") == set()
        assert len(system.observers) == 0
        assert system.registry.online_count == 1

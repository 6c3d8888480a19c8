# tests/test_websocket.py — Broadcaster delivery and per-mutation event tests
import asyncio

import pytest
import sqlalchemy as sa
from fastapi.testclient import TestClient
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import NullPool
from starlette.websockets import WebSocketDisconnect

import main
from auth import AuthService, SESSION_COOKIE_NAME
from board_service import PositionLocks, get_position_locks
from broadcast import BoardBroadcaster, EventType, build_event, get_broadcaster
from database import enable_sqlite_foreign_keys, get_db_session
from models import Base, User
from schemas import ListOut
from tests.conftest import FakeWebSocket, get_auth_headers, create_list, create_card, ADMIN_PASSWORD


async def settle():
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.mark.asyncio
class TestBroadcaster:
    async def test_connect_accepts_socket(self):
        broadcaster = BoardBroadcaster()
        ws = FakeWebSocket()
        await broadcaster.connect(ws, "admin")
        assert ws.accepted
        assert broadcaster.get_stats() == {"total_connections": 1, "users": 1}
        await broadcaster.close_all()

    async def test_publish_reaches_every_connection_in_order(self):
        broadcaster = BoardBroadcaster()
        sockets = [FakeWebSocket() for _ in range(3)]
        for ws in sockets:
            await broadcaster.connect(ws, "admin")

        assert broadcaster.publish(EventType.LIST_DELETED, 1) == 3
        broadcaster.publish(EventType.CARD_DELETED, 2)
        broadcaster.publish(EventType.CARD_DELETED, 3)
        await broadcaster.drain()

        for ws in sockets:
            assert [m["payload"] for m in ws.sent] == [1, 2, 3]
            assert ws.types() == ["list:deleted", "card:deleted", "card:deleted"]
        await broadcaster.close_all()

    async def test_publish_without_connections(self):
        broadcaster = BoardBroadcaster()
        assert broadcaster.publish(EventType.CARD_DELETED, 1) == 0

    async def test_slow_connection_dropped(self):
        """A full outbound queue drops that connection only"""
        broadcaster = BoardBroadcaster(queue_size=2)
        slow = FakeWebSocket(block=True)
        fast = FakeWebSocket()
        await broadcaster.connect(slow, "slow")
        await broadcaster.connect(fast, "fast")

        for i in range(4):
            broadcaster.publish(EventType.CARD_DELETED, i)
            await settle()
        await settle()

        assert slow.closed_code == 1013
        assert broadcaster._closing == set()
        assert broadcaster.get_stats()["total_connections"] == 1
        await broadcaster.drain()
        assert [m["payload"] for m in fast.sent] == [0, 1, 2, 3]
        await broadcaster.close_all()

    async def test_failed_send_drops_connection(self):
        broadcaster = BoardBroadcaster()
        broken = FakeWebSocket(fail=True)
        healthy = FakeWebSocket()
        await broadcaster.connect(broken, "broken")
        await broadcaster.connect(healthy, "healthy")

        broadcaster.publish(EventType.CARD_DELETED, 1)
        await broadcaster.drain()
        await settle()

        assert broadcaster.get_stats()["total_connections"] == 1
        assert healthy.types() == ["card:deleted"]
        broadcaster.publish(EventType.CARD_DELETED, 2)
        await broadcaster.drain()
        assert len(healthy.sent) == 2
        await broadcaster.close_all()

    async def test_disconnect_stops_delivery(self):
        broadcaster = BoardBroadcaster()
        ws = FakeWebSocket()
        conn_id = await broadcaster.connect(ws, "admin")
        await broadcaster.disconnect(conn_id)
        assert broadcaster.publish(EventType.CARD_DELETED, 1) == 0
        assert ws.sent == []

    async def test_send_direct_keeps_order_with_broadcasts(self):
        broadcaster = BoardBroadcaster()
        ws = FakeWebSocket()
        conn_id = await broadcaster.connect(ws, "admin")
        broadcaster.publish(EventType.CARD_DELETED, 1)
        await broadcaster.send_direct(conn_id, {"type": "pong"})
        broadcaster.publish(EventType.CARD_DELETED, 2)
        await broadcaster.drain()
        assert ws.types() == ["card:deleted", "pong", "card:deleted"]
        await broadcaster.close_all()

    async def test_close_all(self):
        broadcaster = BoardBroadcaster()
        sockets = [FakeWebSocket(), FakeWebSocket()]
        for ws in sockets:
            await broadcaster.connect(ws, "admin")
        await broadcaster.close_all()
        assert [ws.closed_code for ws in sockets] == [1001, 1001]
        assert broadcaster.get_stats()["total_connections"] == 0


def test_build_event_serialises_models():
    board_list = ListOut(id=1, name="To Do", position=1, created_at="2026-01-01T00:00:00")
    event = build_event(EventType.LIST_CREATED, board_list)
    assert event == {
        "type": "list:created",
        "payload": {"id": 1, "name": "To Do", "position": 1, "created_at": "2026-01-01T00:00:00Z"},
    }
    assert build_event(EventType.CARD_DELETED, 7) == {"type": "card:deleted", "payload": 7}


@pytest.mark.asyncio
class TestMutationEvents:
    async def test_list_events(self, client: AsyncClient, admin_user, observer, test_broadcaster):
        headers = get_auth_headers(admin_user)
        created = await create_list(client, headers, "To Do")
        updated = (await client.put(f"/api/lists/{created['id']}", json={"name": "Doing"}, headers=headers)).json()
        await client.delete(f"/api/lists/{created['id']}", headers=headers)
        await test_broadcaster.drain()

        assert observer.sent == [
            {"type": "list:created", "payload": created},
            {"type": "list:updated", "payload": updated},
            {"type": "list:deleted", "payload": created["id"]},
        ]

    async def test_card_and_comment_events(self, client: AsyncClient, admin_user, observer, test_broadcaster):
        headers = get_auth_headers(admin_user)
        board_list = await create_list(client, headers, "To Do")
        card = await create_card(client, headers, board_list["id"], "Card")
        updated = (await client.put(
            f"/api/cards/{card['id']}",
            json={"list_id": board_list["id"], "title": "Edited", "position": 1},
            headers=headers,
        )).json()
        moved = (await client.put(f"/api/cards/{card['id']}/move", json={"list_id": board_list["id"], "position": 2}, headers=headers)).json()
        comment = (await client.post(f"/api/cards/{card['id']}/comments", json={"content": "hi"}, headers=headers)).json()
        await client.delete(f"/api/cards/{card['id']}", headers=headers)
        await test_broadcaster.drain()

        assert observer.types() == [
            "list:created", "card:created", "card:updated", "card:updated", "comment:created", "card:deleted",
        ]
        assert observer.sent[1]["payload"] == card
        assert observer.sent[2]["payload"] == updated
        assert observer.sent[3]["payload"] == moved
        assert observer.sent[4]["payload"] == comment
        assert observer.sent[5]["payload"] == card["id"]

    async def test_failed_mutations_publish_nothing(self, client: AsyncClient, admin_user, observer, test_broadcaster):
        headers = get_auth_headers(admin_user)
        await client.post("/api/cards", json={"list_id": 999, "title": "Orphan"}, headers=headers)
        await client.put("/api/lists/999", json={"name": "Ghost"}, headers=headers)
        await client.put("/api/cards/999/move", json={"list_id": 1}, headers=headers)
        await client.post("/api/cards/999/comments", json={"content": "?"}, headers=headers)
        await client.delete("/api/lists/999", headers=headers)
        await client.delete("/api/cards/999", headers=headers)
        await client.post("/api/lists", json={"name": ""}, headers=headers)
        await test_broadcaster.drain()
        assert observer.sent == []

    async def test_reads_publish_nothing(self, client: AsyncClient, admin_user, observer, test_broadcaster):
        headers = get_auth_headers(admin_user)
        await client.get("/api/lists", headers=headers)
        await client.get("/api/cards", headers=headers)
        await client.get("/api/board", headers=headers)
        await test_broadcaster.drain()
        assert observer.sent == []

    async def test_stats_endpoint(self, client: AsyncClient, observer):
        resp = await client.get("/ws/stats")
        assert resp.status_code == 200
        assert resp.json()["total_connections"] == 1


# ============================================================
# /ws ENDPOINT
# ============================================================

@pytest.fixture
def ws_client(tmp_path, monkeypatch):
    """TestClient on a throwaway database; yields the client and an admin session token"""
    db_file = tmp_path / "ws.db"
    sync_engine = sa.create_engine(f"sqlite:///{db_file}")
    Base.metadata.create_all(sync_engine)
    with Session(sync_engine) as session:
        user = User(username="admin", password_hash=AuthService.hash_password(ADMIN_PASSWORD))
        session.add(user)
        session.commit()
        token, _ = AuthService.create_session_token(user)
    sync_engine.dispose()

    # Connections are opened on the TestClient's event loop, never reused across loops
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_file}", poolclass=NullPool)
    enable_sqlite_foreign_keys(engine.sync_engine)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    async def skip(*args, **kwargs):
        return None

    monkeypatch.setattr(main, "init_db", skip)
    monkeypatch.setattr(main, "provision", skip)
    monkeypatch.setattr(main, "close_db", skip)

    broadcaster = BoardBroadcaster()
    locks = PositionLocks()
    main.app.dependency_overrides[get_db_session] = override_get_db
    main.app.dependency_overrides[get_broadcaster] = lambda: broadcaster
    main.app.dependency_overrides[get_position_locks] = lambda: locks
    with TestClient(main.app) as client:
        yield client, token
    main.app.dependency_overrides.clear()


def test_ws_rejects_missing_session(ws_client):
    client, _ = ws_client
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect("/ws"):
            pass
    assert exc.value.code == 4001


def test_ws_rejects_invalid_token(ws_client):
    client, _ = ws_client
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect("/ws?token=not-a-session"):
            pass
    assert exc.value.code == 4001


def test_ws_greeting_and_ping(ws_client):
    client, token = ws_client
    with client.websocket_connect(f"/ws?token={token}") as ws:
        greeting = ws.receive_json()
        assert greeting["type"] == "connected"
        assert greeting["user"]["username"] == "admin"

        ws.send_json({"type": "ping"})
        assert ws.receive_json()["type"] == "pong"

        ws.send_text("not json")
        assert ws.receive_json() == {"type": "error", "detail": "Invalid JSON"}


def test_ws_accepts_session_cookie(ws_client):
    client, token = ws_client
    with client.websocket_connect("/ws", headers={"cookie": f"{SESSION_COOKIE_NAME}={token}"}) as ws:
        assert ws.receive_json()["type"] == "connected"


def test_ws_receives_mutations_and_sync(ws_client):
    client, token = ws_client
    headers = {"Authorization": f"Bearer {token}"}
    with client.websocket_connect(f"/ws?token={token}") as ws:
        assert ws.receive_json()["type"] == "connected"

        resp = client.post("/api/lists", json={"name": "Live"}, headers=headers)
        assert resp.status_code == 200
        assert ws.receive_json() == {"type": "list:created", "payload": resp.json()}

        ws.send_json({"type": "sync"})
        snapshot = ws.receive_json()
        assert snapshot == {"type": "board:sync", "payload": {"lists": [resp.json()], "cards": []}}

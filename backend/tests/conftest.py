# tests/conftest.py — Shared test fixtures
import os
import asyncio

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test.db"
os.environ["SESSION_SECRET"] = "test-session-secret-for-unit-tests-only"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["ENVIRONMENT"] = "test"
os.environ.pop("BASIC_AUTH_USER", None)
os.environ.pop("BASIC_AUTH_PASS", None)

import auth as auth_module
from models import Base, User
from auth import AuthService
from board_service import PositionLocks, get_position_locks
from broadcast import BoardBroadcaster, get_broadcaster
from database import build_engine, get_db_session
from main import app

ADMIN_PASSWORD = "admin123"


class FakeWebSocket:
    """Stand-in for a starlette WebSocket as seen by the broadcaster"""

    def __init__(self, fail: bool = False, block: bool = False):
        self.accepted = False
        self.sent = []
        self.closed_code = None
        self.fail = fail
        self.gate = asyncio.Event()
        if not block:
            self.gate.set()

    async def accept(self):
        self.accepted = True

    async def send_json(self, message):
        await self.gate.wait()
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(message)

    async def close(self, code: int = 1000, reason: str = ""):
        self.closed_code = code

    def types(self):
        return [m["type"] for m in self.sent]


@pytest.fixture(autouse=True)
def reset_login_attempts():
    auth_module._login_attempts.clear()
    yield
    auth_module._login_attempts.clear()


@pytest_asyncio.fixture(scope="function")
async def db_engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'board.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def test_broadcaster():
    return BoardBroadcaster(queue_size=16)


@pytest_asyncio.fixture(scope="function")
async def client(session_factory, test_broadcaster):
    """HTTP test client with overridden DB, broadcaster and lock dependencies"""
    locks = PositionLocks()

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_get_db
    app.dependency_overrides[get_broadcaster] = lambda: test_broadcaster
    app.dependency_overrides[get_position_locks] = lambda: locks
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
    await test_broadcaster.close_all()


@pytest_asyncio.fixture
async def admin_user(db_session):
    """Create the admin user"""
    user = User(username="admin", password_hash=AuthService.hash_password(ADMIN_PASSWORD))
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest_asyncio.fixture
async def other_user(db_session):
    user = User(username="alice", password_hash=AuthService.hash_password("wonderland"))
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest_asyncio.fixture
async def observer(test_broadcaster):
    """A connected WebSocket client that records every event it receives"""
    ws = FakeWebSocket()
    await test_broadcaster.connect(ws, "observer")
    return ws


def get_auth_headers(user: User) -> dict:
    """Generate auth headers for a user"""
    token, _ = AuthService.create_session_token(user)
    return {"Authorization": f"Bearer {token}"}


async def create_list(client: AsyncClient, headers: dict, name: str) -> dict:
    resp = await client.post("/api/lists", json={"name": name}, headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()


async def create_card(client: AsyncClient, headers: dict, list_id: int, title: str, **fields) -> dict:
    resp = await client.post("/api/cards", json={"list_id": list_id, "title": title, **fields}, headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()

# tests/test_bootstrap.py — Provisioning and password reset tests
import pytest
from sqlalchemy import select

from auth import AuthService
from bootstrap import ensure_admin_user, ensure_default_lists, reset_password, provision, DEFAULT_LISTS
from models import User, BoardList


@pytest.mark.asyncio
async def test_ensure_admin_user_is_idempotent(db_session):
    first = await ensure_admin_user(db_session, "admin", "admin123")
    second = await ensure_admin_user(db_session, "admin", "different")
    assert first.id == second.id
    users = (await db_session.execute(select(User))).scalars().all()
    assert len(users) == 1
    assert AuthService.verify_password("admin123", users[0].password_hash)


@pytest.mark.asyncio
async def test_default_lists_seeded_on_empty_board(db_session):
    created = await ensure_default_lists(db_session)
    assert [l.name for l in created] == DEFAULT_LISTS

    rows = (await db_session.execute(select(BoardList).order_by(BoardList.position))).scalars().all()
    assert [(l.name, l.position) for l in rows] == [("To Do", 1), ("In Progress", 2), ("Done", 3)]


@pytest.mark.asyncio
async def test_default_lists_skipped_when_board_has_lists(db_session):
    db_session.add(BoardList(name="Mine", position=1))
    await db_session.commit()

    assert await ensure_default_lists(db_session) == []
    names = (await db_session.execute(select(BoardList.name))).scalars().all()
    assert names == ["Mine"]


@pytest.mark.asyncio
async def test_provision_without_lists(db_session):
    await provision(db_session, seed_lists=False)
    assert (await db_session.execute(select(BoardList))).scalars().all() == []
    assert (await db_session.execute(select(User.username))).scalars().all() == ["admin"]


@pytest.mark.asyncio
async def test_reset_password_updates_existing_user(db_session, admin_user):
    created = await reset_password(db_session, "admin", "n3w-passw0rd")
    assert created is False
    await db_session.refresh(admin_user)
    assert AuthService.verify_password("n3w-passw0rd", admin_user.password_hash)
    assert not AuthService.verify_password("admin123", admin_user.password_hash)


@pytest.mark.asyncio
async def test_reset_password_creates_missing_user(db_session):
    created = await reset_password(db_session, "carol", "pw")
    assert created is True
    user = (await db_session.execute(select(User).where(User.username == "carol"))).scalar_one()
    assert AuthService.verify_password("pw", user.password_hash)

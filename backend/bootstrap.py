# bootstrap.py — One-time provisioning: admin account, default lists, password reset
import os
import logging
from typing import List

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from auth import AuthService
from models import User, BoardList, utcnow

logger = logging.getLogger("tasktracker")

ADMIN_USERNAME = os.getenv("ADMIN_USERNAME", "admin")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "admin123")
SEED_DEFAULT_LISTS = os.getenv("SEED_DEFAULT_LISTS", "true").lower() == "true"

DEFAULT_LISTS = ["To Do", "In Progress", "Done"]


async def ensure_admin_user(db: AsyncSession, username: str = ADMIN_USERNAME, password: str = ADMIN_PASSWORD) -> User:
    """Create the admin account unless it already exists"""
    result = await db.execute(select(User).where(User.username == username))
    user = result.scalar_one_or_none()
    if user:
        return user

    user = User(username=username, password_hash=AuthService.hash_password(password))
    db.add(user)
    await db.commit()
    await db.refresh(user)
    logger.info(f"Default admin created: {username}")
    if password == "admin123":
        logger.warning("Admin is using the default password; change it with scripts/board-admin.py reset-password")
    return user


async def ensure_default_lists(db: AsyncSession, names: List[str] = DEFAULT_LISTS) -> List[BoardList]:
    """Seed the starter lists on an empty board only"""
    count = (await db.execute(select(func.count(BoardList.id)))).scalar() or 0
    if count:
        return []

    created = [BoardList(name=name, position=i + 1, created_at=utcnow()) for i, name in enumerate(names)]
    db.add_all(created)
    await db.commit()
    logger.info(f"Default lists created: {', '.join(names)}")
    return created


async def reset_password(db: AsyncSession, username: str, password: str) -> bool:
    """Set a user's password, creating the user if needed. Returns True when the user was created."""
    result = await db.execute(select(User).where(User.username == username))
    user = result.scalar_one_or_none()
    created = user is None
    if created:
        user = User(username=username, password_hash=AuthService.hash_password(password))
        db.add(user)
    else:
        user.password_hash = AuthService.hash_password(password)
    await db.commit()
    logger.info(f"Password {'set for new' if created else 'updated for'} user '{username}'")
    return created


async def provision(db: AsyncSession, seed_lists: bool = SEED_DEFAULT_LISTS) -> None:
    await ensure_admin_user(db)
    if seed_lists:
        await ensure_default_lists(db)

#!/usr/bin/env python3
"""
TaskTracker — Board administration

Usage:
    python scripts/board-admin.py init-db
    python scripts/board-admin.py init-db --no-default-lists
    python scripts/board-admin.py reset-password admin
    python scripts/board-admin.py reset-password admin --password s3cret

Uses DATABASE_URL like the API server does.
"""

import sys
import asyncio
import getpass
import argparse

from bootstrap import provision, reset_password
from database import init_db, close_db, get_db_context


async def run_init_db(seed_lists: bool) -> None:
    await init_db()
    async with get_db_context() as db:
        await provision(db, seed_lists=seed_lists)
    await close_db()
    print("✅ Database initialised")


async def run_reset_password(username: str, password: str) -> None:
    await init_db()
    async with get_db_context() as db:
        created = await reset_password(db, username, password)
    await close_db()
    if created:
        print(f"✅ User '{username}' created")
    else:
        print(f"✅ Password updated for '{username}'")


# ── CLI ─────────────────────────────────────────────────────

def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="TaskTracker board administration")
    sub = parser.add_subparsers(dest="command", required=True)

    init = sub.add_parser("init-db", help="Create tables, the admin user and the default lists")
    init.add_argument("--no-default-lists", action="store_true", help="Skip seeding To Do / In Progress / Done")

    reset = sub.add_parser("reset-password", help="Set a user's password, creating the user if needed")
    reset.add_argument("username")
    reset.add_argument("--password", type=str, default=None, help="New password (prompted when omitted)")

    args = parser.parse_args(argv)

    if args.command == "init-db":
        asyncio.run(run_init_db(seed_lists=not args.no_default_lists))
        return 0

    password = args.password
    if password is None:
        password = getpass.getpass("New password: ")
        if password != getpass.getpass("Repeat password: "):
            print("❌ Passwords do not match", file=sys.stderr)
            return 1
    if not password:
        print("❌ Password must not be empty", file=sys.stderr)
        return 1
    asyncio.run(run_reset_password(args.username, password))
    return 0


if __name__ == "__main__":
    sys.exit(main())

# database.py - Async database setup for the board store
import os
import logging
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.ext.asyncio import AsyncSession, AsyncEngine, create_async_engine, async_sessionmaker
from contextlib import asynccontextmanager

logger = logging.getLogger("tasktracker.db")

# Database configuration
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./tasktracker.db")


def enable_sqlite_foreign_keys(sync_engine: Engine) -> None:
    """SQLite only enforces ON DELETE CASCADE with the foreign_keys pragma on"""
    if sync_engine.dialect.name != "sqlite":
        return

    @event.listens_for(sync_engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def build_engine(url: str) -> AsyncEngine:
    """Create an async engine; connection pooling options only apply to server databases"""
    options = {"echo": os.getenv("SQL_ECHO", "false").lower() == "true", "future": True}
    if not url.startswith("sqlite"):
        options.update(pool_size=20, max_overflow=0, pool_pre_ping=True, pool_recycle=3600)
    engine = create_async_engine(url, **options)
    enable_sqlite_foreign_keys(engine.sync_engine)
    return engine


engine = build_engine(DATABASE_URL)

# Create async session factory
async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
    autocommit=False,
)


async def get_db_session():
    """Dependency for getting database session (FastAPI Depends)"""
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db():
    """Create tables that do not exist yet"""
    from models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Database initialized (%s)", engine.url.render_as_string(hide_password=True))


async def close_db():
    """Close database connection pool"""
    await engine.dispose()


@asynccontextmanager
async def get_db_context():
    """Context manager for database operations outside of FastAPI request cycle"""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

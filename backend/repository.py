# repository.py — Persistence gateway over an AsyncSession
"""
Thin CRUD gateway used by the board service.

Statements run inside the session's transaction; nothing is durable until
``commit()``. Integrity errors become ``ForeignKeyViolation`` and any other
database error becomes ``PersistenceFailure``; in both cases the transaction
is rolled back first so no partial state survives.
"""

import logging
from typing import Any, List, Optional

from sqlalchemy.engine import Result, Row
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from errors import ForeignKeyViolation, PersistenceFailure

logger = logging.getLogger("tasktracker.db")


class BoardRepository:
    """Wraps one AsyncSession; owned by a single request"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def execute(self, statement) -> Result:
        """Run a mutating statement inside the current transaction"""
        try:
            return await self.session.execute(statement)
        except IntegrityError as e:
            await self.session.rollback()
            logger.warning(f"Integrity error: {e.orig}")
            raise ForeignKeyViolation("Referenced parent does not exist") from e
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Write failed: {e}")
            raise PersistenceFailure("Write failed") from e

    async def query_one(self, statement) -> Optional[Row]:
        result = await self._read(statement)
        return result.first()

    async def query_all(self, statement) -> List[Row]:
        result = await self._read(statement)
        return list(result.all())

    async def scalar(self, statement) -> Any:
        result = await self._read(statement)
        return result.scalar()

    async def commit(self) -> None:
        """Make every statement since the last commit durable"""
        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise ForeignKeyViolation("Referenced parent does not exist") from e
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Commit failed: {e}")
            raise PersistenceFailure("Commit failed") from e

    async def _read(self, statement) -> Result:
        try:
            return await self.session.execute(statement)
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Query failed: {e}")
            raise PersistenceFailure("Query failed") from e

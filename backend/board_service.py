# board_service.py — Board state service: ordering and consistency rules for lists, cards, comments
"""
Applies board mutations through the persistence gateway and returns the
canonical post-write entity.

Rules the store does not enforce on its own:
- New lists and cards are appended at ``max(position) + 1`` of their scope
  (all lists, or the cards of one list). The position is computed by the
  INSERT itself and the statement runs under a per-scope lock, so concurrent
  creates never share a position.
- Positions are never compacted; ties are ordered by id.
- Card updates replace every editable field (last write wins, no merge).
- Every mutation reads its canonical result inside the transaction and
  commits as its final step, so callers can publish the result right away.
"""

import asyncio
import logging
from collections import defaultdict
from datetime import date
from typing import Dict, Hashable, List, Optional

from fastapi import Depends
from sqlalchemy import select, insert, update, delete, func
from sqlalchemy.orm import aliased

from database import get_db_session
from errors import NotFound, ForeignKeyViolation
from models import BoardList, Card, Comment, CardPriority, utcnow
from repository import BoardRepository
from schemas import ListOut, CardOut, CommentOut, BoardSnapshot

logger = logging.getLogger("tasktracker.board")

DML_OPTIONS = {"synchronize_session": False}


class PositionLocks:
    """asyncio locks keyed by ordering scope, shared by every request of the process"""

    def __init__(self):
        self._locks: Dict[Hashable, asyncio.Lock] = defaultdict(asyncio.Lock)

    def for_lists(self) -> asyncio.Lock:
        return self._locks[("lists",)]

    def for_cards(self, list_id: int) -> asyncio.Lock:
        return self._locks[("cards", list_id)]

    def forget_cards(self, list_id: int) -> None:
        """Drop the lock of a deleted list"""
        self._locks.pop(("cards", list_id), None)

    def __len__(self) -> int:
        return len(self._locks)


# ============================================================
# STATEMENT HELPERS
# ============================================================

def _next_list_position():
    sibling = aliased(BoardList)
    return select(func.coalesce(func.max(sibling.position), 0) + 1).scalar_subquery()


def _next_card_position(list_id: int):
    sibling = aliased(Card)
    return (
        select(func.coalesce(func.max(sibling.position), 0) + 1)
        .where(sibling.list_id == list_id)
        .scalar_subquery()
    )


def _comment_count():
    return (
        select(func.count(Comment.id))
        .where(Comment.card_id == Card.id)
        .correlate(Card)
        .scalar_subquery()
        .label("comment_count")
    )


def _list_select():
    return select(BoardList).execution_options(populate_existing=True)


def _card_select():
    return select(Card, _comment_count()).execution_options(populate_existing=True)


def _list_out(row) -> ListOut:
    return ListOut.model_validate(row[0])


def _card_out(row) -> CardOut:
    card, comment_count = row
    out = CardOut.model_validate(card)
    out.comment_count = comment_count or 0
    return out


# ============================================================
# SERVICE
# ============================================================

class BoardService:
    """Mutations and reads over lists, cards and comments"""

    def __init__(self, repository: BoardRepository, locks: PositionLocks):
        self.repo = repository
        self.locks = locks

    # --- Lists ---

    async def list_lists(self) -> List[ListOut]:
        rows = await self.repo.query_all(_list_select().order_by(BoardList.position, BoardList.id))
        return [_list_out(r) for r in rows]

    async def create_list(self, name: str) -> ListOut:
        async with self.locks.for_lists():
            stmt = (
                insert(BoardList)
                .values(name=name, position=_next_list_position(), created_at=utcnow())
                .returning(BoardList.id)
            )
            list_id = (await self.repo.execute(stmt)).scalar_one()
            row = await self.repo.query_one(_list_select().where(BoardList.id == list_id))
            await self.repo.commit()
        logger.info(f"List {list_id} created at position {row[0].position}")
        return _list_out(row)

    async def update_list(self, list_id: int, name: Optional[str] = None, position: Optional[int] = None) -> ListOut:
        values = {}
        if name is not None:
            values["name"] = name
        if position is not None:
            values["position"] = position
        if values:
            await self.repo.execute(
                update(BoardList).where(BoardList.id == list_id).values(**values).execution_options(**DML_OPTIONS)
            )
        row = await self.repo.query_one(_list_select().where(BoardList.id == list_id))
        if row is None:
            raise NotFound(f"List {list_id} not found")
        await self.repo.commit()
        return _list_out(row)

    async def delete_list(self, list_id: int) -> bool:
        """Delete a list and, by cascade, its cards and their comments"""
        result = await self.repo.execute(
            delete(BoardList).where(BoardList.id == list_id).execution_options(**DML_OPTIONS)
        )
        await self.repo.commit()
        deleted = (result.rowcount or 0) > 0
        if deleted:
            self.locks.forget_cards(list_id)
            logger.info(f"List {list_id} deleted")
        return deleted

    # --- Cards ---

    async def list_cards(self) -> List[CardOut]:
        rows = await self.repo.query_all(_card_select().order_by(Card.list_id, Card.position, Card.id))
        return [_card_out(r) for r in rows]

    async def get_card(self, card_id: int) -> CardOut:
        row = await self.repo.query_one(_card_select().where(Card.id == card_id))
        if row is None:
            raise NotFound(f"Card {card_id} not found")
        return _card_out(row)

    async def create_card(
        self,
        list_id: int,
        title: str,
        description: Optional[str] = None,
        priority: Optional[CardPriority] = None,
        assignee: Optional[str] = None,
        due_date: Optional[date] = None,
    ) -> CardOut:
        await self._require_list(list_id)
        now = utcnow()
        async with self.locks.for_cards(list_id):
            stmt = (
                insert(Card)
                .values(
                    list_id=list_id,
                    title=title,
                    description=description or "",
                    priority=priority or CardPriority.MEDIUM,
                    assignee=assignee,
                    due_date=due_date,
                    position=_next_card_position(list_id),
                    created_at=now,
                    updated_at=now,
                )
                .returning(Card.id)
            )
            card_id = (await self.repo.execute(stmt)).scalar_one()
            row = await self.repo.query_one(_card_select().where(Card.id == card_id))
            await self.repo.commit()
        logger.info(f"Card {card_id} created in list {list_id} at position {row[0].position}")
        return _card_out(row)

    async def update_card(
        self,
        card_id: int,
        list_id: int,
        title: str,
        position: int,
        description: Optional[str] = None,
        priority: Optional[CardPriority] = None,
        assignee: Optional[str] = None,
        due_date: Optional[date] = None,
    ) -> CardOut:
        """Overwrite every editable field; omitted optionals fall back to their defaults"""
        await self._require_card(card_id)
        await self._require_list(list_id)
        await self.repo.execute(
            update(Card)
            .where(Card.id == card_id)
            .values(
                list_id=list_id,
                title=title,
                description=description or "",
                priority=priority or CardPriority.MEDIUM,
                position=position,
                assignee=assignee,
                due_date=due_date,
                updated_at=utcnow(),
            )
            .execution_options(**DML_OPTIONS)
        )
        return await self._commit_card(card_id)

    async def move_card(self, card_id: int, list_id: int, position: Optional[int] = None) -> CardOut:
        """Set list and position in one statement; no position appends to the destination list"""
        await self._require_card(card_id)
        await self._require_list(list_id)
        async with self.locks.for_cards(list_id):
            new_position = position if position is not None else _next_card_position(list_id)
            await self.repo.execute(
                update(Card)
                .where(Card.id == card_id)
                .values(list_id=list_id, position=new_position, updated_at=utcnow())
                .execution_options(**DML_OPTIONS)
            )
            card = await self._commit_card(card_id)
        logger.info(f"Card {card_id} moved to list {list_id} at position {card.position}")
        return card

    async def delete_card(self, card_id: int) -> bool:
        result = await self.repo.execute(
            delete(Card).where(Card.id == card_id).execution_options(**DML_OPTIONS)
        )
        await self.repo.commit()
        return (result.rowcount or 0) > 0

    # --- Comments ---

    async def list_comments(self, card_id: int) -> List[CommentOut]:
        await self._require_card(card_id, missing=NotFound)
        rows = await self.repo.query_all(
            select(Comment)
            .where(Comment.card_id == card_id)
            .order_by(Comment.created_at, Comment.id)
        )
        return [CommentOut.model_validate(r[0]) for r in rows]

    async def add_comment(self, card_id: int, author: str, content: str) -> CommentOut:
        """author is the authenticated actor; callers never pass a client-supplied name"""
        await self._require_card(card_id, missing=ForeignKeyViolation)
        stmt = (
            insert(Comment)
            .values(card_id=card_id, author=author, content=content, created_at=utcnow())
            .returning(Comment.id)
        )
        comment_id = (await self.repo.execute(stmt)).scalar_one()
        row = await self.repo.query_one(select(Comment).where(Comment.id == comment_id))
        await self.repo.commit()
        return CommentOut.model_validate(row[0])

    # --- Board ---

    async def snapshot(self) -> BoardSnapshot:
        """Full board state for clients that (re)connect"""
        return BoardSnapshot(lists=await self.list_lists(), cards=await self.list_cards())

    # --- Internals ---

    async def _require_list(self, list_id: int) -> None:
        found = await self.repo.scalar(select(BoardList.id).where(BoardList.id == list_id))
        if found is None:
            raise ForeignKeyViolation(f"List {list_id} does not exist")

    async def _require_card(self, card_id: int, missing=NotFound) -> None:
        found = await self.repo.scalar(select(Card.id).where(Card.id == card_id))
        if found is None:
            raise missing(f"Card {card_id} not found")

    async def _commit_card(self, card_id: int) -> CardOut:
        row = await self.repo.query_one(_card_select().where(Card.id == card_id))
        if row is None:
            raise NotFound(f"Card {card_id} not found")
        await self.repo.commit()
        return _card_out(row)


# ============================================================
# FASTAPI DEPENDENCIES
# ============================================================

position_locks = PositionLocks()


def get_position_locks() -> PositionLocks:
    return position_locks


async def get_board_service(
    db=Depends(get_db_session),
    locks: PositionLocks = Depends(get_position_locks),
) -> BoardService:
    return BoardService(BoardRepository(db), locks)

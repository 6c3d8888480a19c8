# models.py — Database models for the TaskTracker board
# - Integer primary keys (display order ties are broken by id)
# - Lists own Cards, Cards own Comments (ON DELETE CASCADE)
# - Revoked session ids for logout

from datetime import datetime, timezone
from enum import Enum as PyEnum
from sqlalchemy import (
    Column, String, DateTime, Date, Integer, Enum as SQLEnum, ForeignKey, Text, Index,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow():
    return datetime.now(timezone.utc)


# ============================================================
# ENUMS
# ============================================================

class CardPriority(str, PyEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# ============================================================
# USERS & SESSIONS
# ============================================================

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class RevokedSession(Base):
    __tablename__ = "revoked_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    jti = Column(String, unique=True, nullable=False, index=True)  # Session token ID
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    revoked_at = Column(DateTime(timezone=True), default=utcnow)
    expires_at = Column(DateTime(timezone=True), nullable=False)  # When the session would have expired


# ============================================================
# BOARD
# ============================================================

class BoardList(Base):
    """A column of the board; ordered by (position, id)"""
    __tablename__ = "lists"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    position = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    cards = relationship("Card", back_populates="board_list", passive_deletes=True)


class Card(Base):
    """A task card; position is scoped to its list"""
    __tablename__ = "cards"

    id = Column(Integer, primary_key=True, autoincrement=True)
    list_id = Column(Integer, ForeignKey("lists.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    priority = Column(
        SQLEnum(CardPriority, name="cardpriority", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=CardPriority.MEDIUM,
    )
    position = Column(Integer, nullable=False, default=0)
    assignee = Column(String, nullable=True)
    due_date = Column(Date, nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    board_list = relationship("BoardList", back_populates="cards")
    comments = relationship("Comment", back_populates="card", passive_deletes=True)

    __table_args__ = (
        Index("idx_card_list_position", "list_id", "position"),
    )


class Comment(Base):
    """Immutable comment on a card"""
    __tablename__ = "comments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    card_id = Column(Integer, ForeignKey("cards.id", ondelete="CASCADE"), nullable=False, index=True)
    author = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    card = relationship("Card", back_populates="comments")

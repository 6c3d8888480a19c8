# schemas.py — Request and canonical response models for the board API
from datetime import date, datetime, timezone
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models import CardPriority


def as_utc(value: datetime) -> datetime:
    """Naive timestamps come back from SQLite; they are stored as UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ============================================================
# AUTH
# ============================================================

class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=150)
    password: str = Field(..., min_length=1)


class UserOut(BaseModel):
    id: int
    username: str


# ============================================================
# LISTS
# ============================================================

class ListCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)


class ListUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    position: Optional[int] = None


class ListOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    position: int
    created_at: datetime

    utc_timestamps = field_validator("created_at")(as_utc)


# ============================================================
# CARDS
# ============================================================

class CardCreate(BaseModel):
    list_id: int
    title: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = None
    priority: Optional[CardPriority] = None
    assignee: Optional[str] = None
    due_date: Optional[date] = None


class CardUpdate(BaseModel):
    """Full replacement of a card's editable fields"""
    list_id: int
    title: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = None
    priority: Optional[CardPriority] = None
    position: int
    assignee: Optional[str] = None
    due_date: Optional[date] = None


class CardMove(BaseModel):
    list_id: int
    position: Optional[int] = None  # None appends to the end of the list


class CardOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    list_id: int
    title: str
    description: str
    priority: CardPriority
    position: int
    assignee: Optional[str] = None
    due_date: Optional[date] = None
    created_at: datetime
    updated_at: datetime
    comment_count: int = 0

    utc_timestamps = field_validator("created_at", "updated_at")(as_utc)


# ============================================================
# COMMENTS
# ============================================================

class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=10000)


class CommentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    card_id: int
    author: str
    content: str
    created_at: datetime

    utc_timestamps = field_validator("created_at")(as_utc)


# ============================================================
# BOARD
# ============================================================

class BoardSnapshot(BaseModel):
    lists: List[ListOut] = []
    cards: List[CardOut] = []


class SuccessOut(BaseModel):
    success: bool = True

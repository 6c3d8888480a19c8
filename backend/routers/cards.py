# routers/cards.py — Cards and their comments
from typing import List

from fastapi import APIRouter, Depends

from auth import get_current_user, CurrentUser
from board_service import BoardService, get_board_service
from broadcast import BoardBroadcaster, EventType, get_broadcaster
from schemas import CardCreate, CardUpdate, CardMove, CardOut, CommentCreate, CommentOut, SuccessOut

router = APIRouter(prefix="/api/cards", tags=["Cards"])


# ============================================================
# CARD ENDPOINTS
# ============================================================

@router.get("", response_model=List[CardOut])
async def list_cards(
    user: CurrentUser = Depends(get_current_user),
    service: BoardService = Depends(get_board_service),
):
    """All cards grouped by list, in position order, with comment counts"""
    return await service.list_cards()


@router.post("", response_model=CardOut)
async def create_card(
    data: CardCreate,
    user: CurrentUser = Depends(get_current_user),
    service: BoardService = Depends(get_board_service),
    broadcaster: BoardBroadcaster = Depends(get_broadcaster),
):
    card = await service.create_card(
        data.list_id,
        data.title,
        description=data.description,
        priority=data.priority,
        assignee=data.assignee,
        due_date=data.due_date,
    )
    broadcaster.publish(EventType.CARD_CREATED, card)
    return card


@router.put("/{card_id}", response_model=CardOut)
async def update_card(
    card_id: int,
    data: CardUpdate,
    user: CurrentUser = Depends(get_current_user),
    service: BoardService = Depends(get_board_service),
    broadcaster: BoardBroadcaster = Depends(get_broadcaster),
):
    """Replace all card fields (last write wins)"""
    card = await service.update_card(
        card_id,
        list_id=data.list_id,
        title=data.title,
        position=data.position,
        description=data.description,
        priority=data.priority,
        assignee=data.assignee,
        due_date=data.due_date,
    )
    broadcaster.publish(EventType.CARD_UPDATED, card)
    return card


@router.put("/{card_id}/move", response_model=CardOut)
async def move_card(
    card_id: int,
    data: CardMove,
    user: CurrentUser = Depends(get_current_user),
    service: BoardService = Depends(get_board_service),
    broadcaster: BoardBroadcaster = Depends(get_broadcaster),
):
    """Move a card to a list and position"""
    card = await service.move_card(card_id, data.list_id, data.position)
    broadcaster.publish(EventType.CARD_UPDATED, card)
    return card


@router.delete("/{card_id}", response_model=SuccessOut)
async def delete_card(
    card_id: int,
    user: CurrentUser = Depends(get_current_user),
    service: BoardService = Depends(get_board_service),
    broadcaster: BoardBroadcaster = Depends(get_broadcaster),
):
    if await service.delete_card(card_id):
        broadcaster.publish(EventType.CARD_DELETED, card_id)
    return SuccessOut()


# ============================================================
# COMMENT ENDPOINTS
# ============================================================

@router.get("/{card_id}/comments", response_model=List[CommentOut])
async def list_comments(
    card_id: int,
    user: CurrentUser = Depends(get_current_user),
    service: BoardService = Depends(get_board_service),
):
    """Comments on a card, oldest first"""
    return await service.list_comments(card_id)


@router.post("/{card_id}/comments", response_model=CommentOut)
async def add_comment(
    card_id: int,
    data: CommentCreate,
    user: CurrentUser = Depends(get_current_user),
    service: BoardService = Depends(get_board_service),
    broadcaster: BoardBroadcaster = Depends(get_broadcaster),
):
    """Comment as the signed-in user"""
    comment = await service.add_comment(card_id, author=user.username, content=data.content)
    broadcaster.publish(EventType.COMMENT_CREATED, comment)
    return comment

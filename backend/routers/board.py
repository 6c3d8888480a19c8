# routers/board.py — Full board state for initial load and resync
from fastapi import APIRouter, Depends

from auth import get_current_user, CurrentUser
from board_service import BoardService, get_board_service
from schemas import BoardSnapshot

router = APIRouter(prefix="/api/board", tags=["Board"])


@router.get("", response_model=BoardSnapshot)
async def get_board(
    user: CurrentUser = Depends(get_current_user),
    service: BoardService = Depends(get_board_service),
):
    """Every list and card; clients call this after (re)connecting"""
    return await service.snapshot()

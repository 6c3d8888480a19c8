# routers/lists.py — Board lists: every mutation is echoed and broadcast
from typing import List

from fastapi import APIRouter, Depends

from auth import get_current_user, CurrentUser
from board_service import BoardService, get_board_service
from broadcast import BoardBroadcaster, EventType, get_broadcaster
from schemas import ListCreate, ListUpdate, ListOut, SuccessOut

router = APIRouter(prefix="/api/lists", tags=["Lists"])


@router.get("", response_model=List[ListOut])
async def list_lists(
    user: CurrentUser = Depends(get_current_user),
    service: BoardService = Depends(get_board_service),
):
    """All lists in display order"""
    return await service.list_lists()


@router.post("", response_model=ListOut)
async def create_list(
    data: ListCreate,
    user: CurrentUser = Depends(get_current_user),
    service: BoardService = Depends(get_board_service),
    broadcaster: BoardBroadcaster = Depends(get_broadcaster),
):
    """Append a list after the last one"""
    board_list = await service.create_list(data.name)
    broadcaster.publish(EventType.LIST_CREATED, board_list)
    return board_list


@router.put("/{list_id}", response_model=ListOut)
async def update_list(
    list_id: int,
    data: ListUpdate,
    user: CurrentUser = Depends(get_current_user),
    service: BoardService = Depends(get_board_service),
    broadcaster: BoardBroadcaster = Depends(get_broadcaster),
):
    """Rename and/or reposition; siblings are not re-sequenced"""
    board_list = await service.update_list(list_id, name=data.name, position=data.position)
    broadcaster.publish(EventType.LIST_UPDATED, board_list)
    return board_list


@router.delete("/{list_id}", response_model=SuccessOut)
async def delete_list(
    list_id: int,
    user: CurrentUser = Depends(get_current_user),
    service: BoardService = Depends(get_board_service),
    broadcaster: BoardBroadcaster = Depends(get_broadcaster),
):
    """Delete a list with its cards and their comments"""
    if await service.delete_list(list_id):
        broadcaster.publish(EventType.LIST_DELETED, list_id)
    return SuccessOut()

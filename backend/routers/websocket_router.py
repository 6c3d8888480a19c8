# routers/websocket_router.py — Real-time board event stream
import json
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from auth import AuthService, CurrentUser, SESSION_COOKIE_NAME
from board_service import BoardService, PositionLocks, get_position_locks
from broadcast import BoardBroadcaster, get_broadcaster
from database import get_db_session
from errors import Unauthorized
from repository import BoardRepository

router = APIRouter(tags=["WebSocket"])
logger = logging.getLogger("tasktracker.ws")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


async def _authenticate(websocket: WebSocket, token: Optional[str], db: AsyncSession) -> Optional[CurrentUser]:
    """Session cookie first, then the ``token`` query parameter"""
    token = websocket.cookies.get(SESSION_COOKIE_NAME) or token
    if not token:
        return None
    try:
        return await AuthService.resolve_session(token, db)
    except Unauthorized:
        return None
    finally:
        await db.close()


@router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    token: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db_session),
    broadcaster: BoardBroadcaster = Depends(get_broadcaster),
    locks: PositionLocks = Depends(get_position_locks),
):
    """Push board events to the client; ``sync`` pulls the full board"""
    user = await _authenticate(websocket, token, db)
    if user is None:
        await websocket.close(code=4001, reason="Authentication failed")
        return

    connection_id = await broadcaster.connect(websocket, user.username)
    await broadcaster.send_direct(connection_id, {
        "type": "connected",
        "user": user.public(),
        "timestamp": _now(),
    })

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                data = json.loads(raw)
            except ValueError:
                await broadcaster.send_direct(connection_id, {"type": "error", "detail": "Invalid JSON"})
                continue
            msg_type = data.get("type", "") if isinstance(data, dict) else ""

            if msg_type == "ping":
                await broadcaster.send_direct(connection_id, {"type": "pong", "timestamp": _now()})

            elif msg_type == "sync":
                try:
                    snapshot = await BoardService(BoardRepository(db), locks).snapshot()
                finally:
                    await db.close()
                await broadcaster.send_direct(connection_id, {
                    "type": "board:sync",
                    "payload": snapshot.model_dump(mode="json"),
                })

    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error(f"WebSocket error: {e}")
    finally:
        await broadcaster.disconnect(connection_id)


@router.get("/ws/stats")
async def websocket_stats(broadcaster: BoardBroadcaster = Depends(get_broadcaster)):
    """Get WebSocket connection statistics"""
    return broadcaster.get_stats()

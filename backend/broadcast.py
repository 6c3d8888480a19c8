# broadcast.py — Fan-out of board events to connected WebSocket clients
"""
At-most-once, best-effort delivery of ``{"type", "payload"}`` events.

Each connection has its own bounded outbound queue drained by one sender
task, so events reach a client in the order they were published. Publishing
never waits on a socket: a connection that cannot keep up (full queue) or
whose socket fails is dropped. There is no replay; a client that reconnects
must pull the full board state again.
"""

import os
import uuid
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Set

from fastapi import WebSocket
from pydantic import BaseModel

logger = logging.getLogger("tasktracker.ws")

WS_QUEUE_SIZE = int(os.getenv("WS_QUEUE_SIZE", "256"))


class EventType(str, Enum):
    LIST_CREATED = "list:created"
    LIST_UPDATED = "list:updated"
    LIST_DELETED = "list:deleted"
    CARD_CREATED = "card:created"
    CARD_UPDATED = "card:updated"
    CARD_DELETED = "card:deleted"
    COMMENT_CREATED = "comment:created"


def build_event(event_type: EventType, payload: Any) -> dict:
    """Canonical entities are serialised as JSON-ready dicts; deletes carry the bare id"""
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(mode="json")
    return {"type": EventType(event_type).value, "payload": payload}


@dataclass
class _Connection:
    id: str
    websocket: WebSocket
    username: str
    queue: asyncio.Queue
    sender: Optional[asyncio.Task] = None


class BoardBroadcaster:
    """Manages WebSocket connections and their outbound event streams"""

    def __init__(self, queue_size: int = WS_QUEUE_SIZE):
        self.queue_size = queue_size
        self._connections: Dict[str, _Connection] = {}
        self._closing: Set[asyncio.Task] = set()

    async def connect(self, websocket: WebSocket, username: str) -> str:
        await websocket.accept()
        conn = _Connection(
            id=uuid.uuid4().hex,
            websocket=websocket,
            username=username,
            queue=asyncio.Queue(maxsize=self.queue_size),
        )
        conn.sender = asyncio.create_task(self._send_loop(conn))
        self._connections[conn.id] = conn
        logger.info(f"WS connected: user={username} conn={conn.id[:8]}")
        return conn.id

    async def disconnect(self, connection_id: str) -> None:
        conn = self._connections.pop(connection_id, None)
        if conn is None:
            return
        await self._stop_sender(conn)
        logger.info(f"WS disconnected: user={conn.username} conn={connection_id[:8]}")

    def publish(self, event_type: EventType, payload: Any) -> int:
        """Queue an event for every connection; returns how many connections accepted it"""
        message = build_event(event_type, payload)
        accepted = 0
        for conn in list(self._connections.values()):
            try:
                conn.queue.put_nowait(message)
                accepted += 1
            except asyncio.QueueFull:
                logger.warning(f"WS outbound queue full, dropping conn={conn.id[:8]} user={conn.username}")
                self._drop(conn, code=1013)
        logger.debug(f"Published {message['type']} to {accepted} connection(s)")
        return accepted

    async def send_direct(self, connection_id: str, message: dict) -> None:
        """Reply to one connection through its queue so it stays ordered with broadcasts"""
        conn = self._connections.get(connection_id)
        if conn is None:
            return
        try:
            conn.queue.put_nowait(message)
        except asyncio.QueueFull:
            self._drop(conn, code=1013)

    async def drain(self, timeout: float = 5.0) -> None:
        """Wait until every queued event has been handed to its socket"""
        joins = [conn.queue.join() for conn in list(self._connections.values())]
        if joins:
            await asyncio.wait_for(asyncio.gather(*joins), timeout=timeout)

    async def close_all(self) -> None:
        for conn in list(self._connections.values()):
            self._connections.pop(conn.id, None)
            await self._stop_sender(conn)
            await self._close_socket(conn, code=1001)
        if self._closing:
            await asyncio.gather(*list(self._closing))

    def get_stats(self) -> dict:
        return {
            "total_connections": len(self._connections),
            "users": len({c.username for c in self._connections.values()}),
        }

    # --- internals ---

    async def _send_loop(self, conn: _Connection) -> None:
        while True:
            message = await conn.queue.get()
            try:
                await conn.websocket.send_json(message)
            except Exception as e:
                logger.warning(f"WS send failed conn={conn.id[:8]}: {e}")
                conn.queue.task_done()
                self._connections.pop(conn.id, None)
                self._discard_pending(conn)
                return
            conn.queue.task_done()

    def _drop(self, conn: _Connection, code: int) -> None:
        self._connections.pop(conn.id, None)
        if conn.sender is not None:
            conn.sender.cancel()
        self._discard_pending(conn)
        task = asyncio.get_running_loop().create_task(self._close_socket(conn, code=code))
        self._closing.add(task)
        task.add_done_callback(self._closing.discard)

    async def _stop_sender(self, conn: _Connection) -> None:
        sender = conn.sender
        if sender is not None and sender is not asyncio.current_task() and not sender.done():
            sender.cancel()
            try:
                await sender
            except asyncio.CancelledError:
                pass
        self._discard_pending(conn)

    @staticmethod
    def _discard_pending(conn: _Connection) -> None:
        while True:
            try:
                conn.queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            conn.queue.task_done()

    @staticmethod
    async def _close_socket(conn: _Connection, code: int) -> None:
        try:
            await conn.websocket.close(code=code)
        except Exception as e:
            logger.debug(f"WS close failed conn={conn.id[:8]}: {e}")


# Process-wide broadcaster; handlers receive it through get_broadcaster
broadcaster = BoardBroadcaster()


def get_broadcaster() -> BoardBroadcaster:
    return broadcaster

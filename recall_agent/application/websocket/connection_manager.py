from typing import Dict, Set, Optional
from fastapi import WebSocket
import asyncio
import uuid
import structlog

from .schema.events import BaseEvent, ConnectionEvent, ErrorEvent

logger = structlog.get_logger(__name__)


def user_room(user_id: int) -> str:
    """Room shared by every connection of one user"""
    return f"user:{user_id}"


class ConnectionManager:
    """Manages WebSocket connections and per-user rooms"""

    def __init__(self):
        self.active_connections: Dict[str, WebSocket] = {}
        self.rooms: Dict[str, Set[str]] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket) -> str:
        """Accept a new WebSocket connection and return its id"""
        await websocket.accept()
        connection_id = str(uuid.uuid4())

        async with self._lock:
            self.active_connections[connection_id] = websocket

        await self.send_event(
            connection_id,
            ConnectionEvent(status="connected", connection_id=connection_id)
        )

        logger.info("WebSocket connected", connection_id=connection_id)
        return connection_id

    async def join(self, connection_id: str, room: str):
        """Add a connection to a room"""
        async with self._lock:
            if connection_id not in self.active_connections:
                return
            self.rooms.setdefault(room, set()).add(connection_id)

        logger.info("Connection joined room", connection_id=connection_id, room=room)

    def is_member(self, connection_id: str, room: str) -> bool:
        return connection_id in self.rooms.get(room, set())

    async def disconnect(self, connection_id: str):
        """Forget a connection and close it if still open"""
        async with self._lock:
            ws = self.active_connections.pop(connection_id, None)
            for room in list(self.rooms):
                self.rooms[room].discard(connection_id)
                if not self.rooms[room]:
                    del self.rooms[room]

        if ws is not None:
            try:
                await ws.close()
            except Exception as e:
                logger.debug("WebSocket already closed", connection_id=connection_id, error=str(e))

            logger.info("WebSocket disconnected", connection_id=connection_id)

    async def disconnect_all(self):
        for connection_id in list(self.active_connections):
            await self.disconnect(connection_id)

    async def send_event(self, connection_id: str, event: BaseEvent) -> bool:
        """Send an event to a specific connection"""
        websocket = self.active_connections.get(connection_id)
        if websocket is None:
            logger.warning("Attempted to send to disconnected connection", connection_id=connection_id)
            return False

        try:
            await websocket.send_json(event.model_dump(mode="json"))
            return True
        except Exception as e:
            logger.error("Failed to send event", connection_id=connection_id, error=str(e))
            await self.disconnect(connection_id)
            return False

    async def send_to_room(self, room: str, event: BaseEvent):
        """Deliver an event to every connection in a room"""
        connection_ids = list(self.rooms.get(room, set()))
        tasks = [self.send_event(connection_id, event) for connection_id in connection_ids]
        await asyncio.gather(*tasks)

    async def send_error(self, connection_id: str, error_message: str, error_code: Optional[str] = None):
        """Send an error event to a connection"""
        error_event = ErrorEvent(
            payload={"message": error_message},
            error_code=error_code
        )
        await self.send_event(connection_id, error_event)

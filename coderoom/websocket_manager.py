"""
WebSocket connection manager for room fan-out
"""
import logging
import uuid
from typing import Dict, Iterable, Optional

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class WebSocketManager:
    """Tracks live connections by id and delivers events to them"""

    def __init__(self):
        self.active_connections: Dict[str, WebSocket] = {}

    async def connect(self, websocket: WebSocket) -> str:
        """Accept a WebSocket and return its connection id"""
        await websocket.accept()
        connection_id = uuid.uuid4().hex[:12]
        self.active_connections[connection_id] = websocket
        logger.info(f"WebSocket connected: {connection_id} (total connections: {len(self.active_connections)})")
        return connection_id

    def disconnect(self, connection_id: str) -> None:
        if self.active_connections.pop(connection_id, None) is not None:
            logger.info(f"WebSocket disconnected: {connection_id}")

    def is_connected(self, connection_id: str) -> bool:
        return connection_id in self.active_connections

    async def send(self, connection_id: str, message: dict) -> bool:
        """Send a message to one connection; returns False if it is gone"""
        websocket = self.active_connections.get(connection_id)
        if websocket is None:
            return False
        try:
            await websocket.send_json(message)
            return True
        except Exception as e:
            logger.warning(f"Failed to send message to WebSocket {connection_id}: {e}")
            self.disconnect(connection_id)
            return False

    async def send_many(
        self,
        connection_ids: Iterable[str],
        message: dict,
        exclude: Optional[str] = None
    ) -> int:
        """Send a message to several connections; returns how many received it"""
        delivered = 0
        for connection_id in list(connection_ids):
            if connection_id == exclude:
                continue
            if await self.send(connection_id, message):
                delivered += 1
        return delivered

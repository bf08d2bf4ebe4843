"""
WebSocket connection manager.
Tracks live connections per user and pushes JSON messages to them.
Delivery is best-effort: notifications stay retrievable through the list endpoint.
"""
from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Active WebSocket connections keyed by user_id (string)."""

    def __init__(self) -> None:
        # user_id → list of active WebSocket connections (a user may have multiple tabs)
        self._connections: dict[str, list[WebSocket]] = {}

    async def connect(self, websocket: WebSocket, user_id: str) -> None:
        await websocket.accept()
        self._connections.setdefault(user_id, []).append(websocket)
        logger.info("WebSocket connected: user_id=%s", user_id)

    def disconnect(self, websocket: WebSocket, user_id: str) -> None:
        connections = self._connections.get(user_id)
        if connections is not None:
            if websocket in connections:
                connections.remove(websocket)
            if not connections:
                del self._connections[user_id]
        logger.info("WebSocket disconnected: user_id=%s", user_id)

    def is_connected(self, user_id: str) -> bool:
        return bool(self._connections.get(user_id))

    async def send_personal_message(self, user_id: str, data: dict[str, Any]) -> int:
        """Send a JSON message to every connection of a user. Returns sockets reached."""
        connections = list(self._connections.get(user_id, []))
        if not connections:
            return 0
        message = json.dumps(data, default=str)
        delivered = 0
        for ws in connections:
            try:
                await ws.send_text(message)
                delivered += 1
            except Exception as exc:
                logger.warning("Dropping dead WebSocket for user_id=%s: %s", user_id, exc)
                self.disconnect(ws, user_id)
        return delivered

    @property
    def connected_user_count(self) -> int:
        return len(self._connections)


# Singleton instance shared across the application
ws_manager = ConnectionManager()

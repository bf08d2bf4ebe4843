"""
Realtime notification socket.
Clients connect to /ws/{user_id}?token=<access token>; the server pings every
30 seconds and pushes {"type": "notification", "data": {...}} as notifications
are created for that user.
"""
from __future__ import annotations

import asyncio
import logging
import uuid

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from jose import JWTError

from taskboard.core.security import decode_access_token
from taskboard.crud.user import crud_user
from taskboard.db.session import AsyncSessionLocal
from taskboard.services.websocket_service import ws_manager

logger = logging.getLogger(__name__)

router = APIRouter(tags=["WebSocket"])

HEARTBEAT_INTERVAL = 30  # seconds


async def _authorize(token: str | None, user_id: str) -> str | None:
    """Return a close reason, or None when the socket may be accepted."""
    if not token:
        return "Missing authentication token"
    try:
        payload = decode_access_token(token)
    except JWTError:
        return "Invalid or expired token"
    if payload.get("sub") != user_id:
        return "Token user_id mismatch"

    try:
        account_id = uuid.UUID(user_id)
    except ValueError:
        return "Malformed user id"
    async with AsyncSessionLocal() as session:
        user = await crud_user.get(session, account_id)
    if user is None or not user.is_active or user.is_pending_deletion:
        return "User account is deactivated"
    return None


@router.websocket("/ws/{user_id}")
async def websocket_endpoint(websocket: WebSocket, user_id: str) -> None:
    reason = await _authorize(websocket.query_params.get("token"), user_id)
    if reason is not None:
        await websocket.close(code=4001, reason=reason)
        return

    await ws_manager.connect(websocket, user_id)
    heartbeat_task = asyncio.create_task(_heartbeat(websocket))
    try:
        await websocket.send_json({"type": "connected", "user_id": user_id})
        while True:
            data = await websocket.receive_json()
            if data.get("type") == "pong":
                logger.debug("Received pong from user_id=%s", user_id)
    except WebSocketDisconnect:
        logger.info("WebSocket client disconnected: user_id=%s", user_id)
    except Exception as exc:
        logger.error("WebSocket error for user_id=%s: %s", user_id, exc)
    finally:
        heartbeat_task.cancel()
        ws_manager.disconnect(websocket, user_id)


async def _heartbeat(websocket: WebSocket) -> None:
    while True:
        await asyncio.sleep(HEARTBEAT_INTERVAL)
        try:
            await websocket.send_json({"type": "ping"})
        except Exception:
            break

"""
hazardnet.api.routes.realtime — WebSocket transport for the fan-out channel
============================================================================

Connect with ``/api/ws?token=<bearer>``.  Frames in both directions are
JSON objects ``{"event": <name>, "data": <payload>}``.

Client → server: ``join_user_room`` / ``leave_user_room`` with
``data.userId``.  Server → client: ``room_joined``, ``room_left``,
``error``, plus the pushed ``new_alert`` and ``alert_broadcast`` events.
"""

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from jwt.exceptions import InvalidTokenError

from hazardnet.api.deps import decode_token, get_manager
from hazardnet.constants import user_room
from hazardnet.errors import ForbiddenError
from hazardnet.services.realtime import ConnectionManager, frame

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


def _target_user(data) -> int | None:
    if not isinstance(data, dict):
        return None
    try:
        return int(data.get("userId"))
    except (TypeError, ValueError):
        return None


async def _handle(hub: ConnectionManager, websocket: WebSocket, session_id: str, raw: str) -> None:
    try:
        message = json.loads(raw)
    except json.JSONDecodeError:
        await websocket.send_json(frame("error", {"message": "Frames must be JSON"}))
        return
    if not isinstance(message, dict):
        await websocket.send_json(frame("error", {"message": "Frames must be JSON objects"}))
        return

    event = message.get("event")
    user_id = _target_user(message.get("data"))

    if event not in ("join_user_room", "leave_user_room"):
        await websocket.send_json(frame("error", {"message": f"Unknown event: {event}"}))
        return
    if user_id is None:
        await websocket.send_json(frame("error", {"message": "userId is required"}))
        return

    if event == "join_user_room":
        try:
            room = hub.join_user_room(session_id, user_id)
        except ForbiddenError as exc:
            await websocket.send_json(frame("error", {"message": exc.message}))
            return
        await websocket.send_json(frame("room_joined", {"room": room}))
    else:
        hub.leave_user_room(session_id, user_id)
        await websocket.send_json(frame("room_left", {"room": user_room(user_id)}))


@router.websocket("/ws")
async def realtime_socket(
    websocket: WebSocket,
    token: str | None = Query(None),
    hub: ConnectionManager = Depends(get_manager),
):
    try:
        claims = decode_token(token or "")
    except InvalidTokenError:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    session_id = await hub.connect(websocket, claims["id"])
    try:
        while True:
            raw = await websocket.receive_text()
            if not hub.is_connected(session_id):
                break
            await _handle(hub, websocket, session_id, raw)
    except WebSocketDisconnect:
        logger.debug("Session %s closed by client", session_id)
    finally:
        hub.disconnect(session_id)

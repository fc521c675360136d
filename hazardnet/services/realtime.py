"""
hazardnet.services.realtime — Real-Time Fan-Out Channel
========================================================

Per-user rooms over WebSocket sessions.

Session lifecycle::

    connected ──join──▶ joined ──leave──▶ connected ──▶ … ──▶ disconnected

A user may hold several sessions (tabs, devices); each session joins the
``user_<id>`` room on its own.  Delivery is best-effort and at-most-once:
sends are scheduled as tasks on the running loop and nobody waits for them.
A session whose send fails is dropped and its socket closed with 1011.  The notification store is the
durable fallback clients poll on reconnect.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections import defaultdict
from typing import TYPE_CHECKING, Any

from fastapi import status

from hazardnet.constants import user_room
from hazardnet.errors import ForbiddenError

if TYPE_CHECKING:
    from fastapi import WebSocket

logger = logging.getLogger(__name__)


def frame(event: str, data: Any) -> dict:
    """Wire envelope shared by both directions."""
    return {"event": event, "data": data}


class ConnectionManager:
    """Tracks live sessions and their room memberships.

    All methods run on the event loop thread; no locking is needed.
    """

    def __init__(self) -> None:
        self._sockets: dict[str, WebSocket] = {}
        self._owners: dict[str, int] = {}
        self._rooms: dict[str, set[str]] = defaultdict(set)
        self._memberships: dict[str, set[str]] = defaultdict(set)
        self._pending: set[asyncio.Task] = set()

    # -- Introspection ------------------------------------------------------
    @property
    def connection_count(self) -> int:
        return len(self._sockets)

    def room_members(self, user_id: int) -> set[str]:
        return set(self._rooms.get(user_room(user_id), ()))

    def is_connected(self, session_id: str) -> bool:
        return session_id in self._sockets

    # -- Session lifecycle --------------------------------------------------
    async def connect(self, websocket: WebSocket, user_id: int) -> str:
        """Accept the socket and register a session with no room membership."""
        await websocket.accept()
        session_id = uuid.uuid4().hex
        self._sockets[session_id] = websocket
        self._owners[session_id] = user_id
        logger.debug("Session %s connected for user %d", session_id, user_id)
        return session_id

    def join_user_room(self, session_id: str, user_id: int) -> str:
        """Add the session to ``user_<user_id>``.

        Raises
        ------
        ForbiddenError
            If the session is authenticated as a different user.
        """
        owner = self._owners.get(session_id)
        if owner is None:
            raise ForbiddenError("Session is not connected")
        if owner != user_id:
            raise ForbiddenError("Cannot join another user's room")
        room = user_room(user_id)
        self._rooms[room].add(session_id)
        self._memberships[session_id].add(room)
        return room

    def leave_user_room(self, session_id: str, user_id: int) -> bool:
        """Remove the session from ``user_<user_id>``; False if it was not a member."""
        room = user_room(user_id)
        members = self._rooms.get(room)
        if not members or session_id not in members:
            return False
        members.discard(session_id)
        if not members:
            del self._rooms[room]
        self._memberships[session_id].discard(room)
        return True

    def disconnect(self, session_id: str) -> None:
        """Terminal state: forget the socket and every membership it held."""
        self._sockets.pop(session_id, None)
        self._owners.pop(session_id, None)
        for room in self._memberships.pop(session_id, set()):
            members = self._rooms.get(room)
            if members is None:
                continue
            members.discard(session_id)
            if not members:
                del self._rooms[room]
        logger.debug("Session %s disconnected", session_id)

    # -- Delivery -----------------------------------------------------------
    def emit_to_user(self, user_id: int, event: str, payload: Any) -> int:
        """Schedule *payload* to every session in the user's room.

        Returns the number of sends scheduled; zero when the user is offline.
        """
        sessions = list(self._rooms.get(user_room(user_id), ()))
        message = frame(event, payload)
        for session_id in sessions:
            self._schedule(session_id, message)
        return len(sessions)

    def broadcast_all(self, event: str, payload: Any) -> int:
        """Schedule *payload* to every connected session, joined or not."""
        sessions = list(self._sockets)
        message = frame(event, payload)
        for session_id in sessions:
            self._schedule(session_id, message)
        return len(sessions)

    def _schedule(self, session_id: str, message: dict) -> None:
        task = asyncio.get_running_loop().create_task(self._send(session_id, message))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _send(self, session_id: str, message: dict) -> None:
        websocket = self._sockets.get(session_id)
        if websocket is None:
            return
        try:
            await websocket.send_json(message)
        except Exception as exc:
            logger.warning(
                "Dropping session %s after failed %r send: %s",
                session_id, message.get("event"), exc,
            )
            self.disconnect(session_id)
            await self._close(session_id, websocket)

    async def _close(self, session_id: str, websocket: WebSocket) -> None:
        """Close a dropped session so the client reconnects and polls."""
        try:
            await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
        except Exception as exc:
            logger.debug("Session %s was already closed: %s", session_id, exc)

    async def drain(self) -> None:
        """Wait for every scheduled send to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


# Process-wide instance used by the API routes.
manager = ConnectionManager()

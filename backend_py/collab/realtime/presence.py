"""Cursor and selection relay.

Pure pass-through on the high-frequency path: the only check is the
connection's cached room, nothing is stored.
"""

from __future__ import annotations

import logging

from ..schemas import CURSOR_MOVED, ELEMENT_SELECTED, CursorMoveRequest, ElementSelectRequest
from .connections import Connection
from .registry import RoomRegistry

logger = logging.getLogger(__name__)


class PresenceRelay:
    def __init__(self, registry: RoomRegistry):
        self._registry = registry

    def _in_room(self, connection: Connection, project_id: int) -> bool:
        if connection.room == project_id:
            return True
        logger.debug(
            "Dropping presence event from user %s for project %s (in %s)",
            connection.user_id,
            project_id,
            connection.room,
        )
        return False

    async def cursor_moved(self, connection: Connection, move: CursorMoveRequest) -> int:
        if not self._in_room(connection, move.project_id):
            return 0
        payload = {"projectId": move.project_id, "userId": connection.user_id, "x": move.x, "y": move.y}
        return await self._registry.broadcast(move.project_id, CURSOR_MOVED, payload, exclude=connection.sid)

    async def element_selected(self, connection: Connection, selection: ElementSelectRequest) -> int:
        if not self._in_room(connection, selection.project_id):
            return 0
        payload = {
            "userId": connection.user_id,
            "elementId": selection.element_id,
            "elementType": selection.element_type,
        }
        return await self._registry.broadcast(
            selection.project_id, ELEMENT_SELECTED, payload, exclude=connection.sid
        )

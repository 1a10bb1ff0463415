"""Composition of the realtime core and its handler boundary.

``CollabHub`` owns one registry, one connection manager, the change
pipeline and the presence relay. The Socket.IO layer calls its
``on_*`` methods; every failure raised below them is logged and turned
into an ``error`` event for the sender, never for the room.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional

from ..auth_utils import UserIdentity, verify_token
from ..errors import CollabError
from ..schemas import (
    CURSOR_MOVE,
    DIAGRAM_CHANGE,
    ELEMENT_SELECT,
    ERROR,
    JOIN_ROOM,
    LEAVE_ROOM,
    CursorMoveRequest,
    DiagramChangeRequest,
    ElementSelectRequest,
    JoinRoomRequest,
    LeaveRoomRequest,
    parse_event,
)
from ..services.repository import ProjectRepository
from .access import AccessAuthority
from .connections import Connection, ConnectionManager
from .pipeline import DiagramChangePipeline
from .presence import PresenceRelay
from .registry import Emitter, RoomRegistry

logger = logging.getLogger(__name__)

UNEXPECTED_ERRORS = {
    JOIN_ROOM: "Error joining the project",
    LEAVE_ROOM: "Error leaving the project",
    DIAGRAM_CHANGE: "Error updating the diagram",
}


class CollabHub:
    def __init__(
        self,
        emit: Emitter,
        repository: ProjectRepository,
        verify: Callable[[Optional[str]], UserIdentity] = verify_token,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.registry = RoomRegistry(emit)
        self.access = AccessAuthority(repository)
        self.connections = ConnectionManager(self.registry, self.access, repository, verify=verify)
        self.pipeline = DiagramChangePipeline(self.registry, self.access, repository, clock=clock)
        self.presence = PresenceRelay(self.registry)

    async def _dispatch(self, sid: str, event: str, handler: Callable[[], Awaitable[Any]]) -> Any:
        try:
            return await handler()
        except CollabError as exc:
            logger.warning("Rejected %s from %s: %s", event, sid, exc.message)
            await self.registry.send(sid, ERROR, exc.to_event())
        except Exception:
            logger.exception("Unhandled error while processing %s from %s", event, sid)
            await self.registry.send(sid, ERROR, UNEXPECTED_ERRORS.get(event, "Internal server error"))
        return None

    async def on_connect(self, sid: str, auth: Any) -> Connection:
        """Authenticate the handshake. AuthenticationFailure propagates."""
        return await self.connections.connect(sid, auth)

    async def on_disconnect(self, sid: str) -> Optional[Connection]:
        return await self.connections.disconnect(sid)

    async def on_join_room(self, sid: str, data: Any) -> Optional[Connection]:
        async def run():
            request = parse_event(JoinRoomRequest, JOIN_ROOM, data)
            return await self.connections.join(sid, request.project_id)

        return await self._dispatch(sid, JOIN_ROOM, run)

    async def on_leave_room(self, sid: str, data: Any) -> Optional[bool]:
        async def run():
            request = parse_event(LeaveRoomRequest, LEAVE_ROOM, data)
            return await self.connections.leave(sid, request.project_id)

        return await self._dispatch(sid, LEAVE_ROOM, run)

    async def on_diagram_change(self, sid: str, data: Any):
        async def run():
            connection = self.connections.require(sid)
            change = parse_event(DiagramChangeRequest, DIAGRAM_CHANGE, data)
            return await self.pipeline.handle(connection, change)

        return await self._dispatch(sid, DIAGRAM_CHANGE, run)

    async def on_cursor_move(self, sid: str, data: Any) -> Optional[int]:
        async def run():
            connection = self.connections.require(sid)
            move = parse_event(CursorMoveRequest, CURSOR_MOVE, data)
            return await self.presence.cursor_moved(connection, move)

        return await self._dispatch(sid, CURSOR_MOVE, run)

    async def on_element_select(self, sid: str, data: Any) -> Optional[int]:
        async def run():
            connection = self.connections.require(sid)
            selection = parse_event(ElementSelectRequest, ELEMENT_SELECT, data)
            return await self.presence.element_selected(connection, selection)

        return await self._dispatch(sid, ELEMENT_SELECT, run)

"""In-memory room membership and fan-out.

A room is the set of Socket.IO sessions subscribed to one project.
Membership is kept as an insertion-ordered dict per room so lookups
are O(1) and broadcasts reach members in the order they joined.

The registry is only ever touched from the event loop thread. Mutating
methods never await, so a join, leave or disconnect is complete before
any other handler can observe the room.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

# Signature of socketio.AsyncServer.emit, restricted to what we use
Emitter = Callable[..., Awaitable[Any]]


class RoomRegistry:
    def __init__(self, emit: Emitter):
        self._emit = emit
        # project_id -> {sid: None}, dict used as an ordered set
        self._rooms: Dict[int, Dict[str, None]] = {}

    def join(self, sid: str, project_id: int) -> bool:
        """Add ``sid`` to the room. Returns False if it was already there."""
        members = self._rooms.setdefault(project_id, {})
        if sid in members:
            return False
        members[sid] = None
        return True

    def leave(self, sid: str, project_id: int) -> bool:
        """Remove ``sid`` from the room. Returns False if it was not a member."""
        members = self._rooms.get(project_id)
        if not members or sid not in members:
            return False
        del members[sid]
        if not members:
            del self._rooms[project_id]
        return True

    def is_member(self, sid: str, project_id: int) -> bool:
        members = self._rooms.get(project_id)
        return bool(members) and sid in members

    def members(self, project_id: int) -> List[str]:
        return list(self._rooms.get(project_id, ()))

    def rooms(self) -> List[int]:
        return list(self._rooms)

    async def send(self, sid: str, event: str, data: Any) -> None:
        await self._emit(event, data, to=sid)

    async def broadcast(
        self,
        project_id: int,
        event: str,
        data: Any,
        exclude: Optional[str] = None,
    ) -> int:
        """Deliver ``event`` to every member of the room except ``exclude``.

        Recipients are fixed when the call starts. Returns the number of
        connections the event was sent to.
        """
        recipients = [sid for sid in self._rooms.get(project_id, ()) if sid != exclude]
        for sid in recipients:
            await self._emit(event, data, to=sid)
        logger.debug("Broadcast %s to %d member(s) of project %s", event, len(recipients), project_id)
        return len(recipients)

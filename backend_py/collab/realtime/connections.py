"""Per-connection state and the join/leave/disconnect lifecycle.

Handles:
- Handshake authentication and profile enrichment
- Room joins, guarded by the access authority
- Explicit leaves and transport disconnects, with peer notifications

A connection belongs to at most one room. Joining a different project
first leaves the current one, so a session's ``room`` attribute and
the registry's membership always agree.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional

from ..auth_utils import UserIdentity, verify_token
from ..errors import AuthenticationFailure, PersistenceFailure
from ..schemas import JOINED_ROOM, USER_JOINED, USER_LEFT
from ..services.repository import ProjectRepository
from .access import AccessAuthority
from .registry import RoomRegistry

logger = logging.getLogger(__name__)

JOIN_MESSAGE = "A user joined the project"
LEAVE_MESSAGE = "A user left the project"
DISCONNECT_MESSAGE = "A user disconnected"


class ConnectionState(str, Enum):
    # A rejected handshake never produces a Connection
    AUTHENTICATED = "authenticated"
    IN_ROOM = "in_room"
    TERMINATED = "terminated"


@dataclass
class Connection:
    """One live Socket.IO session."""

    sid: str
    user_id: int
    email: Optional[str] = None
    name: Optional[str] = None
    state: ConnectionState = ConnectionState.AUTHENTICATED
    room: Optional[int] = None
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def presence(self, project_id: int, message: str) -> Dict[str, Any]:
        """Payload for ``user-joined`` and ``user-left``."""
        return {
            "projectId": project_id,
            "userId": self.user_id,
            "email": self.email,
            "name": self.name,
            "message": message,
        }


class ConnectionManager:
    def __init__(
        self,
        registry: RoomRegistry,
        access: AccessAuthority,
        repository: ProjectRepository,
        verify: Callable[[Optional[str]], UserIdentity] = verify_token,
    ):
        self._registry = registry
        self._access = access
        self._repository = repository
        self._verify = verify
        self._connections: Dict[str, Connection] = {}

    def get(self, sid: str) -> Optional[Connection]:
        return self._connections.get(sid)

    def require(self, sid: str) -> Connection:
        connection = self._connections.get(sid)
        if connection is None:
            raise AuthenticationFailure("Connection is not authenticated")
        return connection

    def count(self) -> int:
        return len(self._connections)

    async def connect(self, sid: str, auth: Any) -> Connection:
        """Authenticate a new session.

        Args:
            sid: Socket.IO session id
            auth: Handshake auth payload, expected to be ``{"token": ...}``

        Returns:
            The registered Connection

        Raises:
            AuthenticationFailure: token missing or invalid. Nothing is
                registered and the transport should refuse the session.
        """
        token = auth.get("token") if isinstance(auth, dict) else None
        identity = self._verify(token)

        email, name = identity.email, None
        try:
            profile = await self._repository.get_user_profile(identity.user_id)
        except PersistenceFailure as exc:
            logger.warning("Could not load profile for user %s: %s", identity.user_id, exc)
            profile = None
        if profile:
            email, name = profile.email, profile.name

        connection = Connection(sid=sid, user_id=identity.user_id, email=email, name=name)
        self._connections[sid] = connection
        logger.info("User %s connected (sid=%s)", connection.user_id, sid)
        return connection

    async def join(self, sid: str, project_id: int) -> Connection:
        connection = self.require(sid)
        await self._access.check(connection.user_id, project_id)

        if self._connections.get(sid) is not connection:
            # Disconnected while the access check was pending
            return connection

        # Leave the old room and enter the new one without yielding, so
        # no other handler sees the session in two rooms or in none
        previous = connection.room
        if previous is not None and previous != project_id:
            self._registry.leave(sid, previous)
        added = self._registry.join(sid, project_id)
        connection.room = project_id
        connection.state = ConnectionState.IN_ROOM

        if previous is not None and previous != project_id:
            await self._registry.broadcast(
                previous, USER_LEFT, connection.presence(previous, LEAVE_MESSAGE), exclude=sid
            )
            if connection.room != project_id:
                # Moved on or disconnected during the notification
                return connection
        await self._registry.send(sid, JOINED_ROOM, project_id)
        if added:
            await self._registry.broadcast(
                project_id, USER_JOINED, connection.presence(project_id, JOIN_MESSAGE), exclude=sid
            )
            logger.info("User %s joined project %s", connection.user_id, project_id)
        return connection

    async def leave(self, sid: str, project_id: int) -> bool:
        connection = self.require(sid)
        if connection.room != project_id:
            logger.info(
                "User %s asked to leave project %s but is in %s; ignoring",
                connection.user_id,
                project_id,
                connection.room,
            )
            return False
        self._registry.leave(sid, project_id)
        connection.room = None
        connection.state = ConnectionState.AUTHENTICATED
        await self._registry.broadcast(
            project_id, USER_LEFT, connection.presence(project_id, LEAVE_MESSAGE), exclude=sid
        )
        logger.info("User %s left project %s", connection.user_id, project_id)
        return True

    async def disconnect(self, sid: str) -> Optional[Connection]:
        """Drop all state for ``sid`` and tell the last room about it."""
        connection = self._connections.pop(sid, None)
        if connection is None:
            return None

        room = connection.room
        connection.state = ConnectionState.TERMINATED
        if room is not None:
            self._registry.leave(sid, room)
            connection.room = None
            await self._registry.broadcast(
                room, USER_LEFT, connection.presence(room, DISCONNECT_MESSAGE), exclude=sid
            )
        logger.info("User %s disconnected (sid=%s)", connection.user_id, sid)
        return connection

"""Socket.IO server definition.

This module builds the Socket.IO server used for realtime diagram
collaboration and wires its events to a :class:`CollabHub`. Clients
authenticate in the handshake with ``auth={"token": <jwt>}``; a
missing or invalid token refuses the connection. Origins are open by
default for local development, set ``CORS_ORIGINS`` in production.
"""

from __future__ import annotations

import logging
import os
from typing import Callable, List, Optional, Tuple, Union

import socketio
from socketio.exceptions import ConnectionRefusedError

from .auth_utils import UserIdentity, verify_token
from .errors import AuthenticationFailure
from .realtime import CollabHub
from .schemas import CURSOR_MOVE, DIAGRAM_CHANGE, ELEMENT_SELECT, JOIN_ROOM, LEAVE_ROOM
from .services.repository import ProjectRepository

logger = logging.getLogger(__name__)

PING_TIMEOUT = int(os.getenv("SOCKET_PING_TIMEOUT", "25"))
PING_INTERVAL = int(os.getenv("SOCKET_PING_INTERVAL", "20"))


def cors_origins(raw: Optional[str] = None) -> Union[str, List[str]]:
    """Parse ``CORS_ORIGINS`` (comma separated, ``*`` for any)."""
    raw = raw if raw is not None else os.getenv("CORS_ORIGINS", "*")
    origins = [o.strip() for o in raw.split(",") if o.strip()]
    if not origins or "*" in origins:
        return "*"
    return origins


def create_socket_server(
    repository: ProjectRepository,
    verify: Callable[[Optional[str]], UserIdentity] = verify_token,
    origins: Union[str, List[str], None] = None,
) -> Tuple[socketio.AsyncServer, CollabHub]:
    """Create the Socket.IO server and the hub it dispatches to.

    We choose async_mode="asgi" because the application runs in an
    ASGI environment via Uvicorn.
    """
    sio = socketio.AsyncServer(
        async_mode="asgi",
        cors_allowed_origins=origins if origins is not None else cors_origins(),
        ping_timeout=PING_TIMEOUT,
        ping_interval=PING_INTERVAL,
    )
    hub = CollabHub(sio.emit, repository, verify=verify)

    @sio.event
    async def connect(sid, environ, auth=None):
        """Authenticate the handshake before the session enters any room."""
        try:
            await hub.on_connect(sid, auth)
        except AuthenticationFailure as exc:
            logger.info("Refusing socket %s: %s", sid, exc.message)
            raise ConnectionRefusedError(exc.message)

    @sio.event
    async def disconnect(sid, reason=None):
        await hub.on_disconnect(sid)

    async def join_room(sid, data=None):
        await hub.on_join_room(sid, data)

    async def leave_room(sid, data=None):
        await hub.on_leave_room(sid, data)

    async def diagram_change(sid, data=None):
        await hub.on_diagram_change(sid, data)

    async def cursor_move(sid, data=None):
        await hub.on_cursor_move(sid, data)

    async def element_select(sid, data=None):
        await hub.on_element_select(sid, data)

    sio.on(JOIN_ROOM, join_room)
    sio.on(LEAVE_ROOM, leave_room)
    sio.on(DIAGRAM_CHANGE, diagram_change)
    sio.on(CURSOR_MOVE, cursor_move)
    sio.on(ELEMENT_SELECT, element_select)

    return sio, hub

"""Diagram change handling: authorize, persist, broadcast.

Structural changes overwrite the project's stored snapshot and add an
audit row; transient ones ("move", "cursor") are only relayed. There is
no merge: the last structural change written wins.

Writes for one project are serialized with a per-project lock, so the
stored snapshot always reflects the last change to reach the lock.
Peers may still see a change that was never stored: a persistence
failure is reported to the sender and the broadcast goes ahead.
"""

from __future__ import annotations

import asyncio
import json
import logging
import weakref
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from ..errors import CollabError, PersistenceFailure, StateMismatch
from ..schemas import DIAGRAM_UPDATED, ERROR, DiagramChangeRequest
from ..services.repository import AccessRecord, ProjectRepository
from .access import AccessAuthority
from .connections import Connection
from .registry import RoomRegistry

logger = logging.getLogger(__name__)


def serialize_diagram(data: Any) -> str:
    """Canonical stored form of a diagram payload."""
    if isinstance(data, str):
        return data
    return json.dumps(data)


def normalize_diagram(data: Any) -> Any:
    """Structured form of a diagram payload for broadcast.

    Strings are parsed as JSON. Unparseable strings are returned as-is.
    """
    if not isinstance(data, str):
        return data
    try:
        return json.loads(data)
    except ValueError as exc:
        logger.warning("Forwarding unparseable diagram data as received: %s", exc)
        return data


def format_timestamp(moment: datetime) -> str:
    """ISO 8601 in UTC with millisecond precision and a ``Z`` suffix."""
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class ChangeOutcome:
    persisted: bool = False
    audited: bool = False
    broadcast_to: int = 0
    error: Optional[CollabError] = None


class DiagramChangePipeline:
    def __init__(
        self,
        registry: RoomRegistry,
        access: AccessAuthority,
        repository: ProjectRepository,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._registry = registry
        self._access = access
        self._repository = repository
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        # A lock lives only while some change for its project holds a reference
        self._locks = weakref.WeakValueDictionary()

    def _lock_for(self, project_id: int) -> asyncio.Lock:
        lock = self._locks.get(project_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[project_id] = lock
        return lock

    async def handle(self, connection: Connection, change: DiagramChangeRequest) -> ChangeOutcome:
        """Run one change through the pipeline.

        Raises:
            StateMismatch: sender is not in the project's room.
            AuthorizationFailure: sender no longer has an access record.
            PersistenceFailure: the access check itself could not be run.
        """
        received_at = self._clock()
        record = await self._authorize(connection, change)

        outcome = ChangeOutcome()
        if not change.is_transient:
            try:
                await self._persist(record, change, outcome)
            except PersistenceFailure as exc:
                logger.error(
                    "Could not persist %s change for project %s: %s",
                    change.change_type,
                    change.project_id,
                    exc,
                )
                outcome.error = exc
                await self._registry.send(connection.sid, ERROR, exc.to_event())

        outcome.broadcast_to = await self._broadcast(connection, change, received_at)
        logger.info(
            "Diagram updated in project %s by user %s, type: %s",
            change.project_id,
            connection.user_id,
            change.change_type,
        )
        return outcome

    async def _authorize(self, connection: Connection, change: DiagramChangeRequest) -> AccessRecord:
        if connection.room is None or connection.room != change.project_id:
            raise StateMismatch()
        # Access can be revoked mid-session, so check on every change
        record = await self._access.check(connection.user_id, change.project_id)
        if connection.room != change.project_id:
            # Left or disconnected while the check was pending
            raise StateMismatch()
        return record

    async def _persist(self, record: AccessRecord, change: DiagramChangeRequest, outcome: ChangeOutcome) -> None:
        async with self._lock_for(change.project_id):
            if change.diagram_data is not None and change.diagram_data != "":
                await self._repository.save_diagram(change.project_id, serialize_diagram(change.diagram_data))
                outcome.persisted = True
            await self._repository.record_action(record.member_id, f"update_element_{change.change_type}")
            outcome.audited = True

    async def _broadcast(self, connection: Connection, change: DiagramChangeRequest, received_at: datetime) -> int:
        payload = {
            "projectId": change.project_id,
            "userId": connection.user_id,
            "userEmail": connection.email,
            "userName": connection.name,
            "diagramData": normalize_diagram(change.diagram_data),
            "changeType": change.change_type,
            "elementId": change.element_id,
            "timestamp": format_timestamp(received_at),
        }
        return await self._registry.broadcast(change.project_id, DIAGRAM_UPDATED, payload, exclude=connection.sid)

"""Durable storage used by the realtime core.

``ProjectRepository`` wraps a SQLAlchemy session factory and exposes
the handful of queries the realtime layer needs: access records, user
profiles, the diagram snapshot and the audit trail. Each public method
is a coroutine that runs the blocking ORM work in the thread pool, so a
slow database only stalls the event that is waiting on it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..errors import PersistenceFailure
from ..models import Permission, Project, ProjectAction, ProjectMember, User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccessRecord:
    member_id: int
    user_id: int
    project_id: int
    role: Optional[str] = None


@dataclass(frozen=True)
class UserProfile:
    user_id: int
    email: Optional[str] = None
    name: Optional[str] = None


class ProjectRepository:
    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    async def _run(self, fn, *args):
        try:
            return await run_in_threadpool(fn, *args)
        except SQLAlchemyError as exc:
            logger.error("Database error in %s: %s", getattr(fn, "__name__", fn), exc)
            raise PersistenceFailure("Database unavailable") from exc

    # ------------------------------------------------------------------
    # Access records
    # ------------------------------------------------------------------
    def _get_membership(self, user_id: int, project_id: int) -> Optional[AccessRecord]:
        with self._session_factory() as db:
            row = (
                db.query(ProjectMember, Permission.description)
                .outerjoin(Permission, Permission.id == ProjectMember.permission_id)
                .filter(ProjectMember.user_id == user_id, ProjectMember.project_id == project_id)
                .first()
            )
            if not row:
                return None
            member, role = row
            return AccessRecord(
                member_id=member.id,
                user_id=member.user_id,
                project_id=member.project_id,
                role=role,
            )

    async def get_membership(self, user_id: int, project_id: int) -> Optional[AccessRecord]:
        return await self._run(self._get_membership, user_id, project_id)

    def _get_user_profile(self, user_id: int) -> Optional[UserProfile]:
        with self._session_factory() as db:
            user = db.query(User).filter(User.id == user_id).first()
            if not user:
                return None
            return UserProfile(user_id=user.id, email=user.email, name=user.name)

    async def get_user_profile(self, user_id: int) -> Optional[UserProfile]:
        return await self._run(self._get_user_profile, user_id)

    # ------------------------------------------------------------------
    # Diagram snapshot
    # ------------------------------------------------------------------
    def _save_diagram(self, project_id: int, serialized: str) -> None:
        with self._session_factory() as db:
            project = db.query(Project).filter(Project.id == project_id).first()
            if not project:
                raise PersistenceFailure(f"Project {project_id} not found")
            project.diagram_json = serialized
            db.commit()

    async def save_diagram(self, project_id: int, serialized: str) -> None:
        """Overwrite the stored snapshot. Last writer wins."""
        await self._run(self._save_diagram, project_id, serialized)

    def _load_diagram(self, project_id: int) -> Optional[str]:
        with self._session_factory() as db:
            project = db.query(Project).filter(Project.id == project_id).first()
            return project.diagram_json if project else None

    async def load_diagram(self, project_id: int) -> Optional[str]:
        return await self._run(self._load_diagram, project_id)

    # ------------------------------------------------------------------
    # Audit trail
    # ------------------------------------------------------------------
    def _record_action(self, member_id: int, action: str) -> None:
        with self._session_factory() as db:
            db.add(ProjectAction(member_id=member_id, action=action))
            db.commit()

    async def record_action(self, member_id: int, action: str) -> None:
        await self._run(self._record_action, member_id, action)

    def _list_actions(self, project_id: int) -> List[str]:
        with self._session_factory() as db:
            rows = (
                db.query(ProjectAction.action)
                .join(ProjectMember, ProjectMember.id == ProjectAction.member_id)
                .filter(ProjectMember.project_id == project_id)
                .order_by(ProjectAction.id.asc())
                .all()
            )
            return [action for (action,) in rows]

    async def list_actions(self, project_id: int) -> List[str]:
        return await self._run(self._list_actions, project_id)

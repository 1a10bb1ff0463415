from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from ..auth_utils import UserIdentity, get_current_identity
from ..db import SessionLocal
from ..errors import PersistenceFailure
from ..realtime.pipeline import normalize_diagram
from ..services.repository import AccessRecord, ProjectRepository

router = APIRouter(prefix="/projects", tags=["projects"])


def get_repository() -> ProjectRepository:
    return ProjectRepository(SessionLocal)


async def _require_access(project_id: int, identity: UserIdentity, repository: ProjectRepository) -> AccessRecord:
    try:
        record = await repository.get_membership(identity.user_id, project_id)
    except PersistenceFailure as exc:
        raise HTTPException(status_code=503, detail=exc.message)
    if not record:
        raise HTTPException(status_code=403, detail="You do not have access to this project")
    return record


@router.get("/{project_id}/diagram")
async def get_project_diagram(
    project_id: int,
    identity: UserIdentity = Depends(get_current_identity),
    repository: ProjectRepository = Depends(get_repository),
):
    """Return the latest persisted diagram snapshot for the project."""
    record = await _require_access(project_id, identity, repository)
    try:
        stored = await repository.load_diagram(project_id)
    except PersistenceFailure as exc:
        raise HTTPException(status_code=503, detail=exc.message)
    return {
        "projectId": project_id,
        "diagramData": normalize_diagram(stored) if stored else None,
        "role": record.role,
    }


@router.get("/{project_id}/actions")
async def list_project_actions(
    project_id: int,
    identity: UserIdentity = Depends(get_current_identity),
    repository: ProjectRepository = Depends(get_repository),
):
    """Audit tags recorded for the project, oldest first."""
    await _require_access(project_id, identity, repository)
    try:
        actions = await repository.list_actions(project_id)
    except PersistenceFailure as exc:
        raise HTTPException(status_code=503, detail=exc.message)
    return {"projectId": project_id, "actions": actions}

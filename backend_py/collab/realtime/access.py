"""Project access checks backed by the repository."""

from __future__ import annotations

from typing import Optional

from ..errors import AuthorizationFailure
from ..services.repository import AccessRecord, ProjectRepository


class AccessAuthority:
    def __init__(self, repository: ProjectRepository):
        self._repository = repository

    async def find(self, user_id: int, project_id: int) -> Optional[AccessRecord]:
        return await self._repository.get_membership(user_id, project_id)

    async def check(self, user_id: int, project_id: int) -> AccessRecord:
        """Return the access record or raise AuthorizationFailure."""
        record = await self.find(user_id, project_id)
        if record is None:
            raise AuthorizationFailure()
        return record

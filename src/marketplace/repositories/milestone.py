"""Repository for Milestone entity."""

from typing import Any, cast
from uuid import UUID

from sqlalchemy import delete
from sqlalchemy.engine import CursorResult
from sqlmodel import select

from src.marketplace.core.exceptions import ConflictError
from src.marketplace.models import Milestone
from src.marketplace.repositories.base import BaseRepository


class MilestoneRepository(BaseRepository[Milestone]):
    """Repository for Milestone entity."""

    model = Milestone

    async def list_by_project(
        self,
        project_id: UUID,
        cursor: str | None = None,
        limit: int = 50,
    ) -> tuple[list[Milestone], str | None, bool]:
        """List a project's milestones with cursor-based pagination.

        Returns:
            Tuple of (items, next_cursor, has_more)
        """
        query = select(Milestone).where(Milestone.project_id == project_id)
        return await self.paginate(query, cursor, limit)

    async def delete_at_version(self, milestone: Milestone) -> None:
        """Delete the milestone if nobody changed it since it was read.

        Raises:
            ConflictError: If the stored version moved on
        """
        result = await self.session.execute(
            delete(Milestone).where(
                Milestone.id == milestone.id,  # type: ignore[arg-type]
                Milestone.version == milestone.version,  # type: ignore[arg-type]
            )
        )
        if cast(CursorResult[Any], result).rowcount == 0:
            raise ConflictError(
                "Milestone was modified concurrently",
                entity_id=milestone.id,
                expected_version=milestone.version,
            )
        self.session.expunge(milestone)

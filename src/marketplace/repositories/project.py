"""Repository for Project entity."""

from sqlmodel import select

from src.marketplace.models import Project
from src.marketplace.repositories.base import BaseRepository


class ProjectRepository(BaseRepository[Project]):
    """Repository for Project entity."""

    model = Project

    async def list_all(
        self,
        cursor: str | None = None,
        limit: int = 100,
    ) -> tuple[list[Project], str | None, bool]:
        """List all projects with cursor-based pagination.

        Returns:
            Tuple of (items, next_cursor, has_more)
        """
        query = select(Project)
        return await self.paginate(query, cursor, limit)

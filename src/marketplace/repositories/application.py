"""Repository for Application entity."""

from collections.abc import Iterable
from uuid import UUID

from sqlmodel import select

from src.marketplace.models import Application, ApplicationStatus
from src.marketplace.repositories.base import BaseRepository


class ApplicationRepository(BaseRepository[Application]):
    """Repository for Application entity."""

    model = Application

    async def list_by_project(self, project_id: UUID) -> list[Application]:
        """All applications of a project, oldest first.

        Re-reads rows so decisions made on siblings see stored state.
        """
        result = await self.session.execute(
            select(Application)
            .where(Application.project_id == project_id)
            .order_by(Application.created_at, Application.id)  # type: ignore[arg-type]
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def get_assigned(self, project_id: UUID) -> Application | None:
        """The project's assigned application, if any."""
        result = await self.session.execute(
            select(Application)
            .where(
                Application.project_id == project_id,
                Application.status == ApplicationStatus.ASSIGNED.value,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_by_students(
        self, project_id: UUID, student_ids: Iterable[UUID]
    ) -> list[Application]:
        """Applications on the project made by exactly this set of students."""
        wanted = {str(s) for s in student_ids}
        return [
            app
            for app in await self.list_by_project(project_id)
            if set(app.student_ids) == wanted
        ]

"""Project service - the minimal project surface the engine needs."""

from uuid import UUID

from src.marketplace.core.config import get_settings
from src.marketplace.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from src.marketplace.core.logging import get_logger
from src.marketplace.engine.permissions import AccessContext
from src.marketplace.models import ActorRole, EntityType, Project
from src.marketplace.models.base import as_naive_utc
from src.marketplace.repositories import ProjectRepository
from src.marketplace.schemas import ProjectCreate
from src.marketplace.services.access import Actor
from src.marketplace.services.workflow import WorkflowCoordinator

logger = get_logger(__name__)


class ProjectService:
    """Service for project creation and lookup."""

    def __init__(self, project_repo: ProjectRepository, coordinator: WorkflowCoordinator):
        self.project_repo = project_repo
        self.coordinator = coordinator

    async def get(self, project_id: UUID) -> Project:
        project = await self.project_repo.get_by_id(project_id)
        if project is None:
            raise NotFoundError(f"Project {project_id} not found")
        return project

    async def list_all(
        self, cursor: str | None = None, limit: int = 50
    ) -> tuple[list[Project], str | None, bool]:
        return await self.project_repo.list_all(cursor=cursor, limit=limit)

    async def create(self, actor: Actor, data: ProjectCreate) -> Project:
        """Create a project owned by the calling partner.

        Super-admins may create on behalf of a partner by passing ``partner_id``.
        """
        if actor.role == ActorRole.PARTNER:
            partner_id = actor.id
        elif actor.role == ActorRole.SUPER_ADMIN:
            if data.partner_id is None:
                raise ValidationError("partnerId is required when creating on behalf of a partner")
            partner_id = data.partner_id
        else:
            raise ForbiddenError(f"Role {actor.role.value} cannot create projects")

        currency = (data.currency or get_settings().default_currency).upper()
        if not currency.isalpha():
            raise ValidationError("Currency must be a 3-letter ISO code", field="currency")

        ctx = AccessContext(actor_id=actor.id, role=actor.role)
        async with self.coordinator.transaction(ctx) as uow:
            project = Project(
                title=data.title,
                description=data.description,
                partner_id=partner_id,
                supervisor_id=data.supervisor_id,
                university_id=data.university_id,
                department_id=data.department_id,
                course_id=data.course_id,
                capacity=data.capacity,
                currency=currency,
                deadline=as_naive_utc(data.deadline) if data.deadline else None,
            )
            self.project_repo.add(project)
            uow.record(EntityType.PROJECT, project.id, "create", None, None, project_id=project.id)

        logger.info("Project created", project_id=str(project.id), partner_id=str(partner_id))
        return project

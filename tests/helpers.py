"""Test helper functions for common data creation patterns."""

from collections.abc import Sequence
from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from src.marketplace.core.security import create_actor_token
from src.marketplace.models import (
    ActorRole,
    Application,
    ApplicationStatus,
    Milestone,
    MilestoneStatus,
    Project,
)
from src.marketplace.repositories import (
    ApplicationRepository,
    DisputeRepository,
    MilestoneRepository,
    ProjectRepository,
    TransitionLogRepository,
)
from src.marketplace.services import (
    ApplicationService,
    DomainEvent,
    MilestoneService,
    ProjectService,
    WorkflowCoordinator,
)
from src.marketplace.services.access import Actor
from tests.factories import ApplicationFactory, MilestoneFactory, ProjectFactory


@dataclass
class RecordingNotifier:
    """Notifier double that keeps every published event."""

    events: list[DomainEvent] = field(default_factory=list)
    fail: bool = False

    async def publish(self, events: Sequence[DomainEvent]) -> None:
        if self.fail:
            raise RuntimeError("mail relay down")
        self.events.extend(events)

    def kinds(self) -> list[str]:
        return [event.kind for event in self.events]


@dataclass
class Services:
    projects: ProjectService
    applications: ApplicationService
    milestones: MilestoneService
    notifier: RecordingNotifier


def build_services(session: AsyncSession, notifier: RecordingNotifier | None = None) -> Services:
    """Wire the services the same way the API dependencies do."""
    notifier = notifier or RecordingNotifier()
    project_repo = ProjectRepository(session)
    application_repo = ApplicationRepository(session)
    log_repo = TransitionLogRepository(session)
    coordinator = WorkflowCoordinator(session, log_repo, notifier=notifier)
    return Services(
        projects=ProjectService(project_repo, coordinator),
        applications=ApplicationService(project_repo, application_repo, log_repo, coordinator),
        milestones=MilestoneService(
            project_repo,
            application_repo,
            MilestoneRepository(session),
            DisputeRepository(session),
            log_repo,
            coordinator,
        ),
        notifier=notifier,
    )


# --- Actors ---


def partner_of(project: Project) -> Actor:
    return Actor(id=project.partner_id, role=ActorRole.PARTNER)


def supervisor_of(project: Project) -> Actor:
    assert project.supervisor_id is not None
    return Actor(id=project.supervisor_id, role=ActorRole.SUPERVISOR)


def admin_of(project: Project) -> Actor:
    return Actor(
        id=UUID(int=7), role=ActorRole.UNIVERSITY_ADMIN, university_id=project.university_id
    )


def student_of(application: Application) -> Actor:
    return Actor(id=application.student_uuids[0], role=ActorRole.STUDENT)


def super_admin() -> Actor:
    return Actor(id=UUID(int=1), role=ActorRole.SUPER_ADMIN)


def token_for(actor: Actor) -> str:
    return create_actor_token(actor.id, actor.role.value, university_id=actor.university_id)


def auth_headers(actor: Actor) -> dict[str, str]:
    return {"Authorization": f"Bearer {token_for(actor)}"}


# --- Seed data ---


async def create_project(session: AsyncSession, **kwargs) -> Project:
    project = ProjectFactory.build(**kwargs)
    session.add(project)
    await session.commit()
    return project


async def create_application(
    session: AsyncSession,
    project: Project,
    status: ApplicationStatus = ApplicationStatus.SUBMITTED,
    **kwargs,
) -> Application:
    application = ApplicationFactory.build(project_id=project.id, status=status.value, **kwargs)
    session.add(application)
    await session.commit()
    return application


async def create_milestone(
    session: AsyncSession,
    project: Project,
    status: MilestoneStatus = MilestoneStatus.PROPOSED,
    **kwargs,
) -> Milestone:
    milestone = MilestoneFactory.in_status(status, project_id=project.id, **kwargs)
    session.add(milestone)
    await session.commit()
    return milestone


async def create_assigned_project(
    session: AsyncSession,
) -> tuple[Project, Application]:
    """A project with one assigned single-student application."""
    project = await create_project(session)
    assigned = await create_application(session, project, ApplicationStatus.ASSIGNED)
    return project, assigned

"""Service factory dependencies.

All services of one request share the session and the workflow coordinator,
so a multi-entity transition commits exactly once.
"""

from typing import Annotated

from fastapi import Depends

from src.marketplace.api.dependencies.db import DBSession
from src.marketplace.api.dependencies.repositories import (
    ApplicationRepo,
    DisputeRepo,
    MilestoneRepo,
    ProjectRepo,
    TransitionLogRepo,
    UserRepo,
)
from src.marketplace.services import (
    ApplicationService,
    MilestoneService,
    NotificationService,
    ProjectService,
    WorkflowCoordinator,
)


def get_coordinator(
    session: DBSession, log_repo: TransitionLogRepo, user_repo: UserRepo
) -> WorkflowCoordinator:
    """Get the workflow coordinator with email notifications."""
    return WorkflowCoordinator(session, log_repo, notifier=NotificationService(user_repo))


Coordinator = Annotated[WorkflowCoordinator, Depends(get_coordinator)]


def get_project_service(project_repo: ProjectRepo, coordinator: Coordinator) -> ProjectService:
    return ProjectService(project_repo, coordinator)


def get_application_service(
    project_repo: ProjectRepo,
    application_repo: ApplicationRepo,
    log_repo: TransitionLogRepo,
    coordinator: Coordinator,
) -> ApplicationService:
    return ApplicationService(project_repo, application_repo, log_repo, coordinator)


def get_milestone_service(
    project_repo: ProjectRepo,
    application_repo: ApplicationRepo,
    milestone_repo: MilestoneRepo,
    dispute_repo: DisputeRepo,
    log_repo: TransitionLogRepo,
    coordinator: Coordinator,
) -> MilestoneService:
    return MilestoneService(
        project_repo, application_repo, milestone_repo, dispute_repo, log_repo, coordinator
    )


ProjectServiceDep = Annotated[ProjectService, Depends(get_project_service)]
ApplicationServiceDep = Annotated[ApplicationService, Depends(get_application_service)]
MilestoneServiceDep = Annotated[MilestoneService, Depends(get_milestone_service)]

"""Repository factory dependencies."""

from typing import Annotated

from fastapi import Depends

from src.marketplace.api.dependencies.db import DBSession
from src.marketplace.repositories import (
    ApplicationRepository,
    DisputeRepository,
    MilestoneRepository,
    ProjectRepository,
    TransitionLogRepository,
    UserRepository,
)


def get_project_repository(session: DBSession) -> ProjectRepository:
    return ProjectRepository(session)


def get_application_repository(session: DBSession) -> ApplicationRepository:
    return ApplicationRepository(session)


def get_milestone_repository(session: DBSession) -> MilestoneRepository:
    return MilestoneRepository(session)


def get_dispute_repository(session: DBSession) -> DisputeRepository:
    return DisputeRepository(session)


def get_transition_log_repository(session: DBSession) -> TransitionLogRepository:
    return TransitionLogRepository(session)


def get_user_repository(session: DBSession) -> UserRepository:
    return UserRepository(session)


ProjectRepo = Annotated[ProjectRepository, Depends(get_project_repository)]
ApplicationRepo = Annotated[ApplicationRepository, Depends(get_application_repository)]
MilestoneRepo = Annotated[MilestoneRepository, Depends(get_milestone_repository)]
DisputeRepo = Annotated[DisputeRepository, Depends(get_dispute_repository)]
TransitionLogRepo = Annotated[TransitionLogRepository, Depends(get_transition_log_repository)]
UserRepo = Annotated[UserRepository, Depends(get_user_repository)]

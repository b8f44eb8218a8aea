"""FastAPI dependency injection definitions - Lobby Pattern."""

# Auth
from src.marketplace.api.dependencies.auth import CurrentActor, get_current_actor

# Database
from src.marketplace.api.dependencies.db import DBSession, get_db_session

# Repositories
from src.marketplace.api.dependencies.repositories import (
    ApplicationRepo,
    DisputeRepo,
    MilestoneRepo,
    ProjectRepo,
    TransitionLogRepo,
    UserRepo,
)

# Services
from src.marketplace.api.dependencies.services import (
    ApplicationServiceDep,
    Coordinator,
    MilestoneServiceDep,
    ProjectServiceDep,
    get_application_service,
    get_coordinator,
    get_milestone_service,
    get_project_service,
)

# Versioning
from src.marketplace.api.dependencies.versioning import IfMatchVersion, resolve_expected_version

__all__ = [
    # Auth
    "CurrentActor",
    "get_current_actor",
    # Database
    "DBSession",
    "get_db_session",
    # Repositories
    "ApplicationRepo",
    "DisputeRepo",
    "MilestoneRepo",
    "ProjectRepo",
    "TransitionLogRepo",
    "UserRepo",
    # Services
    "ApplicationServiceDep",
    "Coordinator",
    "MilestoneServiceDep",
    "ProjectServiceDep",
    "get_application_service",
    "get_coordinator",
    "get_milestone_service",
    "get_project_service",
    # Versioning
    "IfMatchVersion",
    "resolve_expected_version",
]

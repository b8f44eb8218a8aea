"""Model exports - Lobby Pattern.

Import from here: `from src.marketplace.models import Application, Milestone`
"""

# Enums
from src.marketplace.models.enums import (
    ActorRole,
    ApplicantType,
    ApplicationAction,
    ApplicationStatus,
    EntityType,
    EscrowStatus,
    MilestoneAction,
    MilestoneStatus,
)

# Tables
from src.marketplace.models.project import Project
from src.marketplace.models.application import Application
from src.marketplace.models.milestone import Milestone
from src.marketplace.models.dispute import Dispute
from src.marketplace.models.transition_log import TransitionLog
from src.marketplace.models.user import User

__all__ = [
    # Enums
    "ActorRole",
    "ApplicantType",
    "ApplicationAction",
    "ApplicationStatus",
    "EntityType",
    "EscrowStatus",
    "MilestoneAction",
    "MilestoneStatus",
    # Tables
    "Application",
    "Dispute",
    "Milestone",
    "Project",
    "TransitionLog",
    "User",
]

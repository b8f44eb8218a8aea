"""Repository layer - data access abstraction."""

from src.marketplace.repositories.application import ApplicationRepository
from src.marketplace.repositories.base import BaseRepository
from src.marketplace.repositories.dispute import DisputeRepository
from src.marketplace.repositories.milestone import MilestoneRepository
from src.marketplace.repositories.project import ProjectRepository
from src.marketplace.repositories.transition_log import TransitionLogRepository
from src.marketplace.repositories.user import UserRepository

__all__ = [
    "ApplicationRepository",
    "BaseRepository",
    "DisputeRepository",
    "MilestoneRepository",
    "ProjectRepository",
    "TransitionLogRepository",
    "UserRepository",
]

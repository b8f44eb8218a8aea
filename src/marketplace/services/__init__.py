from src.marketplace.services.access import Actor, build_access_context
from src.marketplace.services.application_service import ApplicationService
from src.marketplace.services.milestone_service import MilestoneService
from src.marketplace.services.notification_service import NotificationService
from src.marketplace.services.project_service import ProjectService
from src.marketplace.services.workflow import DomainEvent, Notifier, WorkflowCoordinator

__all__ = [
    "Actor",
    "ApplicationService",
    "DomainEvent",
    "MilestoneService",
    "NotificationService",
    "Notifier",
    "ProjectService",
    "WorkflowCoordinator",
    "build_access_context",
]

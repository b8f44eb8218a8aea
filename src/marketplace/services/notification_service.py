"""Notification delivery for committed workflow events."""

import asyncio
from collections.abc import Sequence

from src.marketplace.core.logging import get_logger
from src.marketplace.core.notifications import send_event_email
from src.marketplace.models import EntityType
from src.marketplace.repositories import UserRepository
from src.marketplace.services.workflow import DomainEvent

logger = get_logger(__name__)

# kind -> (subject, message)
_TEMPLATES: dict[str, tuple[str, str]] = {
    "application.submitted": ("New application", "A new application was submitted."),
    "application.shortlisted": ("Shortlisted", "Your application was shortlisted."),
    "application.waitlisted": ("Waitlisted", "Your application was put on the waitlist."),
    "application.reset": ("Back under review", "Your application is under review again."),
    "application.offered": ("You have an offer", "Accept your project offer before it expires."),
    "application.assigned": ("You have been assigned", "You have been assigned to a project."),
    "application.unassigned": ("Assignment changed", "The project was reassigned."),
    "application.offer_declined": ("Offer declined", "An applicant declined your offer."),
    "application.rejected": ("Application update", "Your application was not selected."),
    "application.reinstated": ("Reinstated", "Your application is under review again."),
    "application.withdrawn": ("Application withdrawn", "An applicant withdrew their application."),
    "application.terminated": ("Assignment ended", "The assigned applicant left the project."),
    "application.recommended": ("Recommended candidate", "An application was recommended to you."),
    "milestone.proposed": ("New milestone proposed", "A milestone was proposed for your project."),
    "milestone.updated": ("Milestone updated", "A milestone on your project was updated."),
    "milestone.deleted": ("Milestone removed", "A milestone on your project was removed."),
    "milestone.transitioned": ("Milestone update", "A milestone on your project changed status."),
    "milestone.changes_requested": ("Changes requested", "Changes were requested on a milestone."),
    "milestone.released": ("Funds released", "Escrow funds for a milestone were released."),
    "milestone.disputed": ("Dispute raised", "A dispute was raised on a milestone."),
}


def _link_path(event: DomainEvent) -> str:
    if event.entity_type == EntityType.MILESTONE:
        return f"/milestones/{event.entity_id}"
    return f"/projects/{event.project_id}"


class NotificationService:
    """Resolves recipients and sends one email per recipient and event.

    Failures for a single recipient are logged and do not stop the others.
    """

    def __init__(self, user_repo: UserRepository):
        self.user_repo = user_repo

    async def publish(self, events: Sequence[DomainEvent]) -> None:
        for event in events:
            await self._deliver(event)

    async def _deliver(self, event: DomainEvent) -> None:
        subject, message = _TEMPLATES.get(
            event.kind, ("Project update", "There is an update on your project.")
        )
        if event.channel == "chat" and event.payload.get("message"):
            message = str(event.payload["message"])

        users = await self.user_repo.get_active_by_ids(event.recipients)
        if len(users) < len(set(event.recipients)):
            logger.debug(
                "Some notification recipients are unknown or inactive",
                kind=event.kind,
                requested=len(set(event.recipients)),
                resolved=len(users),
            )

        for user in users:
            sent = await asyncio.to_thread(
                send_event_email,
                user.email,
                user.full_name,
                subject,
                message,
                _link_path(event),
                event.kind,
            )
            if not sent:
                logger.warning("Notification not delivered", kind=event.kind, user_id=str(user.id))

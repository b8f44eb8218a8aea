"""Actor identity and access context construction.

Ownership flags are always derived from persisted project and application
rows, never taken from the token.
"""

from dataclasses import dataclass
from uuid import UUID

from src.marketplace.engine.permissions import AccessContext
from src.marketplace.models import ActorRole, Application, Project


@dataclass(frozen=True)
class Actor:
    """Authenticated caller as asserted by the identity collaborator."""

    id: UUID
    role: ActorRole
    university_id: UUID | None = None


def build_access_context(
    actor: Actor,
    project: Project,
    application: Application | None = None,
    assigned: Application | None = None,
) -> AccessContext:
    """Derive the actor's relations to a project and, optionally, an application.

    Args:
        actor: The caller
        project: Project the target belongs to
        application: Application being acted on, if any
        assigned: The project's currently assigned application, if any
    """
    return AccessContext(
        actor_id=actor.id,
        role=actor.role,
        is_project_owner=actor.role == ActorRole.PARTNER and project.partner_id == actor.id,
        is_assigned_student=(
            actor.role == ActorRole.STUDENT
            and assigned is not None
            and assigned.has_member(actor.id)
        ),
        is_application_member=(
            actor.role == ActorRole.STUDENT
            and application is not None
            and application.has_member(actor.id)
        ),
        is_project_supervisor=(
            actor.role == ActorRole.SUPERVISOR and project.supervisor_id == actor.id
        ),
        is_university_admin=(
            actor.role == ActorRole.UNIVERSITY_ADMIN
            and actor.university_id is not None
            and actor.university_id == project.university_id
        ),
    )


def project_participants(project: Project, assigned: Application | None) -> set[UUID]:
    """Everyone with a stake in a project's milestones."""
    participants = {project.partner_id}
    if project.supervisor_id is not None:
        participants.add(project.supervisor_id)
    if assigned is not None:
        participants.update(assigned.student_uuids)
    return participants

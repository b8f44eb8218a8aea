"""Permission engine.

Pure lookup over (role, ownership relation, state). Authorization runs in two
steps: the capability table decides whether the actor could ever perform the
action (``ForbiddenError`` if not, whatever the state), then the state machine
guard decides whether the current state allows it. Super-admins skip the
ownership relation but never the state guard.
"""

from dataclasses import dataclass
from enum import StrEnum
from uuid import UUID

from src.marketplace.core.exceptions import ForbiddenError
from src.marketplace.engine import applications as application_machine
from src.marketplace.engine import milestones as milestone_machine
from src.marketplace.models.enums import (
    ActorRole,
    ApplicationAction,
    ApplicationStatus,
    MilestoneAction,
    MilestoneStatus,
)


class Relation(StrEnum):
    """Ownership relation between the actor and the project or application."""

    ANY = "any"
    PROJECT_OWNER = "project_owner"
    ASSIGNED_STUDENT = "assigned_student"
    APPLICATION_MEMBER = "application_member"
    PROJECT_SUPERVISOR = "project_supervisor"
    UNIVERSITY_ADMIN = "university_admin"


@dataclass(frozen=True)
class AccessContext:
    """Who is acting and how they relate to the target, derived from persisted state."""

    actor_id: UUID
    role: ActorRole
    is_project_owner: bool = False
    is_assigned_student: bool = False
    is_application_member: bool = False
    is_project_supervisor: bool = False
    is_university_admin: bool = False

    def has(self, relation: Relation) -> bool:
        match relation:
            case Relation.ANY:
                return True
            case Relation.PROJECT_OWNER:
                return self.is_project_owner
            case Relation.ASSIGNED_STUDENT:
                return self.is_assigned_student
            case Relation.APPLICATION_MEMBER:
                return self.is_application_member
            case Relation.PROJECT_SUPERVISOR:
                return self.is_project_supervisor
            case Relation.UNIVERSITY_ADMIN:
                return self.is_university_admin


R = ActorRole
MA = MilestoneAction
AA = ApplicationAction

_OWNER = {R.PARTNER: Relation.PROJECT_OWNER, R.SUPER_ADMIN: Relation.ANY}
_ASSIGNED = {R.STUDENT: Relation.ASSIGNED_STUDENT, R.SUPER_ADMIN: Relation.ANY}
_ASSIGNED_ONLY = {R.STUDENT: Relation.ASSIGNED_STUDENT}
_SUPERVISOR_ONLY = {R.SUPERVISOR: Relation.PROJECT_SUPERVISOR}

# action -> {role: relation the role needs}
MILESTONE_CAPABILITIES: dict[MilestoneAction, dict[ActorRole, Relation]] = {
    MA.CREATE: _OWNER,
    MA.EDIT: _OWNER,
    MA.DELETE: _OWNER,
    MA.SAVE_DRAFT: _OWNER,
    MA.ACCEPT_PROPOSAL: _ASSIGNED,
    MA.FINALIZE: _OWNER,
    MA.FUND_ESCROW: _OWNER,
    MA.START_WORK: _ASSIGNED,
    MA.SUBMIT: _ASSIGNED_ONLY,
    MA.START_REVIEW: {
        R.PARTNER: Relation.PROJECT_OWNER,
        R.SUPERVISOR: Relation.PROJECT_SUPERVISOR,
        R.SUPER_ADMIN: Relation.ANY,
    },
    MA.SUPERVISOR_APPROVE: _SUPERVISOR_ONLY,
    MA.SUPERVISOR_REQUEST_CHANGES: _SUPERVISOR_ONLY,
    MA.APPROVE_AND_RELEASE: _OWNER,
    MA.REQUEST_CHANGES: _OWNER,
    MA.RESUME_WORK: _ASSIGNED_ONLY,
    MA.DISAPPROVE: _OWNER,
    MA.MARK_COMPLETE: _OWNER,
    MA.UNMARK_COMPLETE: _OWNER,
    MA.DISPUTE: {
        R.PARTNER: Relation.PROJECT_OWNER,
        R.STUDENT: Relation.ASSIGNED_STUDENT,
        R.SUPERVISOR: Relation.PROJECT_SUPERVISOR,
        R.UNIVERSITY_ADMIN: Relation.UNIVERSITY_ADMIN,
        R.SUPER_ADMIN: Relation.ANY,
    },
}

_SCREENERS = {
    R.PARTNER: Relation.PROJECT_OWNER,
    R.UNIVERSITY_ADMIN: Relation.UNIVERSITY_ADMIN,
    R.SUPERVISOR: Relation.PROJECT_SUPERVISOR,
    R.SUPER_ADMIN: Relation.ANY,
}
_ASSIGNERS = {
    R.PARTNER: Relation.PROJECT_OWNER,
    R.UNIVERSITY_ADMIN: Relation.UNIVERSITY_ADMIN,
    R.SUPER_ADMIN: Relation.ANY,
}
_MEMBER = {R.STUDENT: Relation.APPLICATION_MEMBER}

APPLICATION_CAPABILITIES: dict[ApplicationAction, dict[ActorRole, Relation]] = {
    AA.SHORTLIST: _SCREENERS,
    AA.WAITLIST: _SCREENERS,
    AA.RESET: _SCREENERS,
    AA.REJECT: _SCREENERS,
    AA.OFFER: {
        R.UNIVERSITY_ADMIN: Relation.UNIVERSITY_ADMIN,
        R.SUPERVISOR: Relation.PROJECT_SUPERVISOR,
        R.SUPER_ADMIN: Relation.ANY,
    },
    AA.ACCEPT: _ASSIGNERS,
    AA.REASSIGN: _ASSIGNERS,
    AA.UNDO_REJECT: _ASSIGNERS,
    AA.ACCEPT_OFFER: _MEMBER,
    AA.DECLINE_OFFER: _MEMBER,
    AA.WITHDRAW: _MEMBER,
    AA.TERMINATE: _MEMBER,
    AA.RECOMMEND: {R.PARTNER: Relation.PROJECT_OWNER, R.SUPER_ADMIN: Relation.ANY},
    AA.SCORE_AS_PARTNER: {R.PARTNER: Relation.PROJECT_OWNER},
    AA.SCORE_AS_SUPERVISOR: {
        R.SUPERVISOR: Relation.PROJECT_SUPERVISOR,
        R.UNIVERSITY_ADMIN: Relation.UNIVERSITY_ADMIN,
    },
}


def _capable(ctx: AccessContext, table: dict[ActorRole, Relation]) -> bool:
    relation = table.get(ctx.role)
    return relation is not None and ctx.has(relation)


def _reviewer_matches_gate(ctx: AccessContext, supervisor_gate: bool) -> bool:
    """Gated milestones are opened for review by the supervisor, others by the partner."""
    if ctx.role == R.SUPER_ADMIN:
        return True
    return (ctx.role == R.SUPERVISOR) == supervisor_gate


def can_perform_milestone_action(
    ctx: AccessContext,
    action: MilestoneAction,
    milestone: milestone_machine.MilestoneState | None = None,
) -> bool:
    """Role and ownership check only, ignoring the current status."""
    if not _capable(ctx, MILESTONE_CAPABILITIES[action]):
        return False
    if action == MA.START_REVIEW and milestone is not None:
        return _reviewer_matches_gate(ctx, milestone.supervisor_gate)
    return True


def authorize_milestone(
    ctx: AccessContext,
    action: MilestoneAction,
    milestone: milestone_machine.MilestoneState | None = None,
) -> MilestoneStatus | None:
    """Authorize a milestone action and return the status it leads to.

    ``milestone`` is None only for ``create``.

    Raises:
        ForbiddenError: If the actor can never perform the action
        NotEditableError: If edit/delete is attempted after work started
        InvalidTransitionError: If the current state does not allow it
    """
    if not can_perform_milestone_action(ctx, action, milestone):
        raise ForbiddenError(
            f"Role {ctx.role.value} may not {action.value} this milestone",
            action=action.value,
            actor_id=ctx.actor_id,
        )
    if milestone is None:
        return None
    return milestone_machine.target_status(action, milestone)


def milestone_actions(
    ctx: AccessContext, milestone: milestone_machine.MilestoneState
) -> frozenset[MilestoneAction]:
    """Actions the actor may take on the milestone right now."""
    return frozenset(
        action
        for action in MILESTONE_CAPABILITIES
        if action != MA.CREATE
        and can_perform_milestone_action(ctx, action, milestone)
        and milestone_machine.can_apply(action, milestone)
    )


def can_perform_application_action(ctx: AccessContext, action: ApplicationAction) -> bool:
    return _capable(ctx, APPLICATION_CAPABILITIES[action])


def require_application_capability(ctx: AccessContext, action: ApplicationAction) -> None:
    """Raise ``ForbiddenError`` unless the actor could ever perform ``action``."""
    if not can_perform_application_action(ctx, action):
        raise ForbiddenError(
            f"Role {ctx.role.value} may not {action.value} this application",
            action=action.value,
            actor_id=ctx.actor_id,
        )


def authorize_application(
    ctx: AccessContext,
    action: ApplicationAction,
    application: application_machine.Candidate,
) -> ApplicationStatus:
    """Authorize an application action and return the status it leads to.

    Raises:
        ForbiddenError: If the actor can never perform the action
        InvalidTransitionError: If the current status does not allow it
    """
    require_application_capability(ctx, action)
    return application_machine.next_status(action, ApplicationStatus(application.status))


def application_actions(
    ctx: AccessContext, application: application_machine.Candidate
) -> frozenset[ApplicationAction]:
    current = ApplicationStatus(application.status)
    return frozenset(
        action
        for action in APPLICATION_CAPABILITIES
        if can_perform_application_action(ctx, action)
        and application_machine.can_apply(action, current)
    )

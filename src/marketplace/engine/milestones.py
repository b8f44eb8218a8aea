"""Milestone escrow state machine.

Escrow status is never set independently: every transition takes it from
``ESCROW_FOR_STATUS`` so the two columns stay consistent.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Protocol

from src.marketplace.core.exceptions import (
    InvalidTransitionError,
    NotEditableError,
    ValidationError,
)
from src.marketplace.models.base import as_naive_utc
from src.marketplace.models.enums import EscrowStatus, MilestoneAction, MilestoneStatus

S = MilestoneStatus
A = MilestoneAction

# Content can change only until work starts
EDITABLE_STATUSES = frozenset({S.PROPOSED, S.DRAFT, S.ACCEPTED, S.FINALIZED, S.FUNDED})

WORK_STATUSES = frozenset(
    {S.IN_PROGRESS, S.SUBMITTED, S.SUPERVISOR_REVIEW, S.PARTNER_REVIEW, S.CHANGES_REQUESTED}
)

ESCROW_FOR_STATUS: dict[MilestoneStatus, EscrowStatus] = {
    S.PROPOSED: EscrowStatus.PENDING,
    S.DRAFT: EscrowStatus.PENDING,
    S.ACCEPTED: EscrowStatus.PENDING,
    S.FINALIZED: EscrowStatus.PENDING,
    S.FUNDED: EscrowStatus.FUNDED,
    S.IN_PROGRESS: EscrowStatus.HELD,
    S.SUBMITTED: EscrowStatus.HELD,
    S.SUPERVISOR_REVIEW: EscrowStatus.HELD,
    S.PARTNER_REVIEW: EscrowStatus.HELD,
    S.CHANGES_REQUESTED: EscrowStatus.HELD,
    S.RELEASED: EscrowStatus.RELEASED,
    S.COMPLETED: EscrowStatus.RELEASED,
}

# action -> (allowed from-statuses, target status; None keeps the status)
TRANSITIONS: dict[MilestoneAction, tuple[frozenset[MilestoneStatus], MilestoneStatus | None]] = {
    A.EDIT: (EDITABLE_STATUSES, None),
    A.DELETE: (EDITABLE_STATUSES, None),
    A.SAVE_DRAFT: (frozenset({S.PROPOSED}), S.DRAFT),
    A.ACCEPT_PROPOSAL: (frozenset({S.PROPOSED, S.DRAFT}), S.ACCEPTED),
    A.FINALIZE: (frozenset({S.ACCEPTED}), S.FINALIZED),
    A.FUND_ESCROW: (frozenset({S.FINALIZED}), S.FUNDED),
    A.START_WORK: (frozenset({S.FUNDED}), S.IN_PROGRESS),
    A.SUBMIT: (frozenset({S.IN_PROGRESS, S.CHANGES_REQUESTED}), S.SUBMITTED),
    # Target depends on the supervisor gate, see target_status()
    A.START_REVIEW: (frozenset({S.SUBMITTED}), S.PARTNER_REVIEW),
    A.SUPERVISOR_APPROVE: (frozenset({S.SUPERVISOR_REVIEW}), S.PARTNER_REVIEW),
    A.SUPERVISOR_REQUEST_CHANGES: (frozenset({S.SUPERVISOR_REVIEW}), S.CHANGES_REQUESTED),
    A.APPROVE_AND_RELEASE: (frozenset({S.PARTNER_REVIEW}), S.RELEASED),
    A.REQUEST_CHANGES: (frozenset({S.PARTNER_REVIEW}), S.CHANGES_REQUESTED),
    A.RESUME_WORK: (frozenset({S.CHANGES_REQUESTED}), S.IN_PROGRESS),
    A.DISAPPROVE: (frozenset({S.RELEASED}), S.PARTNER_REVIEW),
    A.MARK_COMPLETE: (frozenset({S.RELEASED}), S.COMPLETED),
    A.UNMARK_COMPLETE: (frozenset({S.COMPLETED}), S.RELEASED),
    A.DISPUTE: (WORK_STATUSES, None),
}

# Actions that exist only for milestones behind a supervisor gate
GATED_ACTIONS = frozenset({A.SUPERVISOR_APPROVE, A.SUPERVISOR_REQUEST_CHANGES})


class MilestoneState(Protocol):
    status: str
    supervisor_gate: bool
    supervisor_approved_at: datetime | None


@dataclass(frozen=True)
class Transition:
    action: MilestoneAction
    from_status: MilestoneStatus
    to_status: MilestoneStatus
    escrow_status: EscrowStatus

    @property
    def changes_status(self) -> bool:
        return self.from_status != self.to_status


def allowed_from(action: MilestoneAction) -> frozenset[MilestoneStatus]:
    if action == A.CREATE:
        return frozenset()
    return TRANSITIONS[action][0]


def gate_satisfied(action: MilestoneAction, milestone: MilestoneState) -> bool:
    """Gate conditions on top of the status guard."""
    if action in GATED_ACTIONS:
        return milestone.supervisor_gate
    if action == A.APPROVE_AND_RELEASE and milestone.supervisor_gate:
        return milestone.supervisor_approved_at is not None
    return True


def can_apply(action: MilestoneAction, milestone: MilestoneState) -> bool:
    return S(milestone.status) in allowed_from(action) and gate_satisfied(action, milestone)


def target_status(action: MilestoneAction, milestone: MilestoneState) -> MilestoneStatus:
    """Resolve the status an action leads to.

    Raises:
        NotEditableError: If edit/delete is attempted after work started
        InvalidTransitionError: If the status or gate does not allow the action
    """
    current = S(milestone.status)
    allowed, target = TRANSITIONS[action]
    if current not in allowed:
        if action in (A.EDIT, A.DELETE):
            raise NotEditableError(
                f"Milestone in status {current.value} can no longer be changed",
                action=action.value,
                status=current.value,
            )
        raise InvalidTransitionError(
            f"Cannot {action.value} a milestone in status {current.value}",
            action=action.value,
            status=current.value,
        )
    if not gate_satisfied(action, milestone):
        if action == A.APPROVE_AND_RELEASE:
            raise InvalidTransitionError(
                "Supervisor approval is required before release", action=action.value
            )
        raise InvalidTransitionError(
            "Milestone has no supervisor gate", action=action.value, status=current.value
        )
    if action == A.START_REVIEW and milestone.supervisor_gate:
        return S.SUPERVISOR_REVIEW
    return target if target is not None else current


def transition(action: MilestoneAction, milestone: MilestoneState) -> Transition:
    current = S(milestone.status)
    to_status = target_status(action, milestone)
    return Transition(
        action=action,
        from_status=current,
        to_status=to_status,
        escrow_status=ESCROW_FOR_STATUS[to_status],
    )


def validate_fields(
    *,
    title: str,
    scope: str,
    acceptance_criteria: str,
    amount: Decimal,
    due_date: datetime | None,
    currency: str,
    now: datetime,
    supervisor_gate: bool = False,
    has_supervisor: bool = False,
) -> None:
    """Validate milestone content on create and edit.

    ``due_date`` may be None on edit when the date is not being changed.
    A gated milestone needs a project supervisor to open its review.

    Raises:
        ValidationError: On the first invalid field
    """
    if not 3 <= len(title.strip()) <= 200:
        raise ValidationError("Title must be between 3 and 200 characters", field="title")
    if len(scope.strip()) < 10:
        raise ValidationError("Scope must be at least 10 characters", field="scope")
    if len(acceptance_criteria.strip()) < 10:
        raise ValidationError(
            "Acceptance criteria must be at least 10 characters", field="acceptance_criteria"
        )
    if amount <= 0:
        raise ValidationError("Amount must be greater than zero", field="amount")
    if due_date is not None and as_naive_utc(due_date) <= now:
        raise ValidationError("Due date must be in the future", field="due_date")
    if len(currency) != 3 or not currency.isalpha() or not currency.isupper():
        raise ValidationError("Currency must be a 3-letter ISO code", field="currency")
    if supervisor_gate and not has_supervisor:
        raise ValidationError(
            "Supervisor gate requires the project to have a supervisor", field="supervisor_gate"
        )

"""Application assignment state machine.

Transition table plus the guard checks that depend only on the application
itself and its siblings on the same project. Persistence and the
single-assignment swap live in the application service.
"""

import html
import re
from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Protocol
from uuid import UUID

from src.marketplace.core.exceptions import (
    InvalidTransitionError,
    InvariantViolationError,
    ValidationError,
)
from src.marketplace.models.base import as_naive_utc
from src.marketplace.models.enums import ApplicantType, ApplicationAction, ApplicationStatus

S = ApplicationStatus
A = ApplicationAction

MIN_STATEMENT_LENGTH = 50

# Statuses an application can be assigned (or offered) from
ASSIGNABLE_STATUSES = frozenset({S.SUBMITTED, S.SHORTLISTED, S.WAITLIST, S.ACCEPTED})

# Still competing for the project
OPEN_STATUSES = ASSIGNABLE_STATUSES | {S.OFFERED}

TERMINAL_STATUSES = frozenset({S.REJECTED, S.DECLINED})

_ALL = frozenset(S)


class Candidate(Protocol):
    id: UUID
    status: str


# action -> (allowed from-statuses, target status; None keeps the status)
TRANSITIONS: dict[ApplicationAction, tuple[frozenset[S], S | None]] = {
    A.SHORTLIST: (frozenset({S.SUBMITTED, S.WAITLIST}), S.SHORTLISTED),
    A.WAITLIST: (frozenset({S.SUBMITTED, S.SHORTLISTED}), S.WAITLIST),
    A.RESET: (frozenset({S.SHORTLISTED, S.WAITLIST}), S.SUBMITTED),
    A.OFFER: (ASSIGNABLE_STATUSES, S.OFFERED),
    A.ACCEPT: (ASSIGNABLE_STATUSES, S.ASSIGNED),
    A.ACCEPT_OFFER: (frozenset({S.OFFERED}), S.ASSIGNED),
    A.DECLINE_OFFER: (frozenset({S.OFFERED}), S.DECLINED),
    A.REJECT: (OPEN_STATUSES, S.REJECTED),
    A.UNDO_REJECT: (frozenset({S.REJECTED}), S.SUBMITTED),
    A.WITHDRAW: (ASSIGNABLE_STATUSES, S.DECLINED),
    A.TERMINATE: (frozenset({S.ASSIGNED}), S.DECLINED),
    A.REASSIGN: (ASSIGNABLE_STATUSES, S.ASSIGNED),
    A.RECOMMEND: (_ALL - {S.REJECTED}, None),
    A.SCORE_AS_PARTNER: (_ALL - TERMINAL_STATUSES, None),
    A.SCORE_AS_SUPERVISOR: (_ALL - TERMINAL_STATUSES, None),
}


def allowed_from(action: ApplicationAction) -> frozenset[ApplicationStatus]:
    return TRANSITIONS[action][0]


def can_apply(action: ApplicationAction, current: ApplicationStatus) -> bool:
    return current in allowed_from(action)


def next_status(action: ApplicationAction, current: ApplicationStatus) -> ApplicationStatus:
    """Resolve the status an action leads to.

    Raises:
        InvalidTransitionError: If the action is not allowed from ``current``
    """
    allowed, target = TRANSITIONS[action]
    if current not in allowed:
        raise InvalidTransitionError(
            f"Cannot {action.value} an application in status {current.value}",
            action=action.value,
            status=current.value,
        )
    return target if target is not None else current


def displaced_status(reject_previous: bool) -> ApplicationStatus:
    """Status the previously assigned application moves to on reassignment."""
    return S.REJECTED if reject_previous else S.ACCEPTED


def validate_offer_expiry(expires_at: datetime | None, now: datetime) -> datetime:
    if expires_at is None:
        raise ValidationError("Offer expiry is required")
    expires_at = as_naive_utc(expires_at)
    if expires_at <= now:
        raise ValidationError("Offer expiry must be in the future")
    return expires_at


def check_offer_open(expires_at: datetime | None, now: datetime) -> None:
    if expires_at is not None and as_naive_utc(expires_at) <= now:
        raise InvalidTransitionError("Offer has expired", expired_at=expires_at.isoformat())


def ensure_no_other_assigned(application_id: UUID, siblings: Iterable[Candidate]) -> None:
    """Raise if another application of the project already holds the assignment."""
    for other in siblings:
        if other.id != application_id and other.status == S.ASSIGNED.value:
            raise InvariantViolationError(
                "Project already has an assigned application",
                assigned_application_id=other.id,
            )


def is_last_open_candidate(application_id: UUID, siblings: Sequence[Candidate]) -> bool:
    """True when rejecting this application would leave an unassigned project
    with no candidates."""
    statuses = {other.id: S(other.status) for other in siblings}
    if S.ASSIGNED in statuses.values():
        return False
    return not any(
        status in OPEN_STATUSES
        for other_id, status in statuses.items()
        if other_id != application_id
    )


_TAG_RE = re.compile(r"<[^>]*>")


def plain_text(statement: str) -> str:
    """Strip markup from a rich-text statement."""
    return html.unescape(_TAG_RE.sub("", statement)).replace("\xa0", " ").strip()


def validate_submission(
    applicant_type: ApplicantType,
    student_ids: Sequence[UUID],
    group_id: UUID | None,
    statement: str,
    actor_id: UUID,
) -> None:
    """Validate a new or resubmitted application.

    Raises:
        ValidationError: If the applicant set or statement is malformed
    """
    if len(plain_text(statement)) < MIN_STATEMENT_LENGTH:
        raise ValidationError(
            f"Application statement must be at least {MIN_STATEMENT_LENGTH} characters"
        )
    if not student_ids:
        raise ValidationError("At least one student is required")
    if len(set(student_ids)) != len(student_ids):
        raise ValidationError("Student ids must be unique")
    if applicant_type == ApplicantType.INDIVIDUAL and len(student_ids) != 1:
        raise ValidationError("Individual applications have exactly one student")
    if applicant_type == ApplicantType.GROUP and group_id is None:
        raise ValidationError("Group ID is required for group applications")
    if actor_id not in student_ids:
        raise ValidationError("Submitting student must be a member of the application")

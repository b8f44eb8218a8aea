"""Shared enums for models.

Status values are the wire format of the platform API, so they are upper-case.
"""

from enum import Enum


class ActorRole(str, Enum):
    """Role of the acting user, as resolved by the identity collaborator."""

    PARTNER = "partner"
    STUDENT = "student"
    SUPERVISOR = "supervisor"
    UNIVERSITY_ADMIN = "university-admin"
    SUPER_ADMIN = "super-admin"


class ApplicantType(str, Enum):
    """Who is applying."""

    INDIVIDUAL = "INDIVIDUAL"
    GROUP = "GROUP"


class ApplicationStatus(str, Enum):
    """Application screening and assignment status."""

    SUBMITTED = "SUBMITTED"
    SHORTLISTED = "SHORTLISTED"
    WAITLIST = "WAITLIST"
    OFFERED = "OFFERED"
    # Previously assigned candidate displaced by a reassignment
    ACCEPTED = "ACCEPTED"
    ASSIGNED = "ASSIGNED"
    REJECTED = "REJECTED"
    # Applicant withdrew, terminated, or declined an offer
    DECLINED = "DECLINED"


class MilestoneStatus(str, Enum):
    """Milestone lifecycle status, in lifecycle order."""

    PROPOSED = "PROPOSED"
    DRAFT = "DRAFT"
    ACCEPTED = "ACCEPTED"
    FINALIZED = "FINALIZED"
    FUNDED = "FUNDED"
    IN_PROGRESS = "IN_PROGRESS"
    SUBMITTED = "SUBMITTED"
    SUPERVISOR_REVIEW = "SUPERVISOR_REVIEW"
    PARTNER_REVIEW = "PARTNER_REVIEW"
    CHANGES_REQUESTED = "CHANGES_REQUESTED"
    RELEASED = "RELEASED"
    COMPLETED = "COMPLETED"


class EscrowStatus(str, Enum):
    """State of the funds held for a milestone."""

    PENDING = "PENDING"
    FUNDED = "FUNDED"
    HELD = "HELD"
    RELEASED = "RELEASED"


class ApplicationAction(str, Enum):
    """Actions on an application."""

    SHORTLIST = "shortlist"
    WAITLIST = "waitlist"
    RESET = "reset"
    OFFER = "offer"
    ACCEPT = "accept"
    ACCEPT_OFFER = "accept_offer"
    DECLINE_OFFER = "decline_offer"
    REJECT = "reject"
    UNDO_REJECT = "undo_reject"
    WITHDRAW = "withdraw"
    TERMINATE = "terminate"
    REASSIGN = "reassign"
    RECOMMEND = "recommend"
    SCORE_AS_PARTNER = "score_as_partner"
    SCORE_AS_SUPERVISOR = "score_as_supervisor"


class MilestoneAction(str, Enum):
    """Actions on a milestone."""

    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"
    SAVE_DRAFT = "save_draft"
    ACCEPT_PROPOSAL = "accept_proposal"
    FINALIZE = "finalize"
    FUND_ESCROW = "fund_escrow"
    START_WORK = "start_work"
    SUBMIT = "submit"
    START_REVIEW = "start_review"
    SUPERVISOR_APPROVE = "supervisor_approve"
    SUPERVISOR_REQUEST_CHANGES = "supervisor_request_changes"
    APPROVE_AND_RELEASE = "approve_and_release"
    REQUEST_CHANGES = "request_changes"
    RESUME_WORK = "resume_work"
    DISAPPROVE = "disapprove"
    MARK_COMPLETE = "mark_complete"
    UNMARK_COMPLETE = "unmark_complete"
    DISPUTE = "dispute"


class EntityType(str, Enum):
    """Entity kinds recorded in the transition log."""

    APPLICATION = "application"
    MILESTONE = "milestone"
    PROJECT = "project"

"""Project, application, milestone and user factories."""

from decimal import Decimal

from polyfactory import Use

from src.marketplace.engine.milestones import ESCROW_FOR_STATUS
from src.marketplace.models import (
    ActorRole,
    ApplicantType,
    Application,
    ApplicationStatus,
    EscrowStatus,
    Milestone,
    MilestoneStatus,
    Project,
    User,
)
from tests.factories.base import BaseFactory, generate_uuid7, in_days, utc_now

STATEMENT = (
    "We have built three production web apps together and want to apply that "
    "experience to this project."
)


class ProjectFactory(BaseFactory):
    """Factory for generating Project test data."""

    __model__ = Project

    id = Use(generate_uuid7)
    title = Use(lambda: f"Project {generate_uuid7().hex[-8:]}")
    description = "Build a thing"
    partner_id = Use(generate_uuid7)
    supervisor_id = Use(generate_uuid7)
    university_id = Use(generate_uuid7)
    department_id = None
    course_id = None
    capacity = 1
    currency = "USD"
    deadline = None
    version = 1
    created_at = Use(utc_now)
    updated_at = Use(utc_now)


class ApplicationFactory(BaseFactory):
    """Factory for generating Application test data. Pass ``project_id``."""

    __model__ = Application

    id = Use(generate_uuid7)
    applicant_type = ApplicantType.INDIVIDUAL.value
    group_id = None
    student_ids = Use(lambda: [str(generate_uuid7())])
    statement = STATEMENT
    attachments = Use(list)
    status = ApplicationStatus.SUBMITTED.value
    offer_expires_at = None
    skill_match = 50.0
    rating_score = 50.0
    on_time_rate = 0.5
    rework_rate = 0.5
    portfolio_score = 50.0
    auto_score = 50.0
    manual_partner_score = None
    manual_supervisor_score = None
    final_score = 50.0
    version = 1
    created_at = Use(utc_now)
    updated_at = Use(utc_now)

    @classmethod
    def assigned(cls, **kwargs):
        """Create an assigned application."""
        return cls.build(status=ApplicationStatus.ASSIGNED.value, **kwargs)


class MilestoneFactory(BaseFactory):
    """Factory for generating Milestone test data. Pass ``project_id``."""

    __model__ = Milestone

    id = Use(generate_uuid7)
    title = "Landing page"
    scope = "Responsive landing page with signup form"
    acceptance_criteria = "Passes review on mobile and desktop"
    due_date = Use(lambda: in_days(30))
    amount = Decimal("500.00")
    currency = "USD"
    status = MilestoneStatus.PROPOSED.value
    escrow_status = EscrowStatus.PENDING.value
    supervisor_gate = False
    supervisor_approved_at = None
    version = 1
    created_at = Use(utc_now)
    updated_at = Use(utc_now)

    @classmethod
    def in_status(cls, status: MilestoneStatus, **kwargs):
        """Create a milestone whose escrow status matches ``status``."""
        return cls.build(
            status=status.value, escrow_status=ESCROW_FOR_STATUS[status].value, **kwargs
        )


class UserFactory(BaseFactory):
    """Factory for generating User test data."""

    __model__ = User

    id = Use(generate_uuid7)
    email = Use(lambda: f"user_{generate_uuid7().hex[-8:]}@example.com")
    full_name = "Test User"
    role = ActorRole.STUDENT.value
    is_active = True
    created_at = Use(utc_now)

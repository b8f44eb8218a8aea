"""Milestone lifecycle and escrow tests against the database."""

from datetime import timedelta
from decimal import Decimal

import pytest

from src.marketplace.core.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidTransitionError,
    NotEditableError,
    NotFoundError,
    ValidationError,
)
from src.marketplace.models import (
    ActorRole,
    EscrowStatus,
    Milestone,
    MilestoneAction,
    MilestoneStatus,
)
from src.marketplace.models.base import utc_now
from src.marketplace.schemas import MilestoneCreate, MilestoneUpdate
from src.marketplace.services.access import Actor
from tests.factories.base import generate_uuid7
from tests.helpers import (
    admin_of,
    create_assigned_project,
    create_milestone,
    create_project,
    partner_of,
    student_of,
    supervisor_of,
)

pytestmark = pytest.mark.integration

S = MilestoneStatus
E = EscrowStatus
A = MilestoneAction


async def reload(session, milestone_id) -> Milestone:
    milestone = await session.get(Milestone, milestone_id, populate_existing=True)
    assert milestone is not None
    return milestone


def proposal(project_id, **overrides) -> MilestoneCreate:
    values = {
        "project_id": project_id,
        "title": "Ingestion pipeline",
        "scope": "Nightly import of partner sales data",
        "acceptance_criteria": "Runs for a week without manual fixes",
        "due_date": utc_now() + timedelta(days=21),
        "amount": Decimal("1200.00"),
    }
    values.update(overrides)
    return MilestoneCreate(**values)


class TestCreate:
    async def test_partner_proposes(self, db_session, services):
        project, assigned = await create_assigned_project(db_session)

        milestone = await services.milestones.create(partner_of(project), proposal(project.id))

        stored = await reload(db_session, milestone.id)
        assert (stored.status, stored.escrow_status) == (S.PROPOSED.value, E.PENDING.value)
        assert stored.currency == project.currency
        assert stored.version == 1
        event = services.notifier.events[-1]
        assert event.kind == "milestone.proposed"
        assert set(event.recipients) == {project.supervisor_id, *assigned.student_uuids}

    async def test_other_partner_forbidden(self, db_session, services):
        project, _ = await create_assigned_project(db_session)
        stranger = Actor(id=generate_uuid7(), role=ActorRole.PARTNER)

        with pytest.raises(ForbiddenError):
            await services.milestones.create(stranger, proposal(project.id))

    @pytest.mark.parametrize(
        "overrides",
        [
            {"title": "ab"},
            {"amount": Decimal("-5")},
            {"currency": "EURO"},
        ],
    )
    async def test_invalid_fields(self, db_session, services, overrides):
        project, _ = await create_assigned_project(db_session)

        with pytest.raises(ValidationError):
            await services.milestones.create(
                partner_of(project), proposal(project.id, **overrides)
            )

    async def test_past_due_date(self, db_session, services):
        project, _ = await create_assigned_project(db_session)
        data = proposal(project.id, due_date=utc_now() - timedelta(days=1))

        with pytest.raises(ValidationError):
            await services.milestones.create(partner_of(project), data)

    async def test_unknown_project(self, db_session, services):
        project, _ = await create_assigned_project(db_session)

        with pytest.raises(NotFoundError):
            await services.milestones.create(partner_of(project), proposal(generate_uuid7()))

    async def test_gate_needs_project_supervisor(self, db_session, services):
        project = await create_project(db_session, supervisor_id=None)

        with pytest.raises(ValidationError, match="supervisor"):
            await services.milestones.create(
                partner_of(project), proposal(project.id, supervisor_gate=True)
            )


class TestLifecycle:
    async def test_full_lifecycle_moves_escrow(self, db_session, services):
        """Proposal to completion, with escrow following every status."""
        project, assigned = await create_assigned_project(db_session)
        partner, student = partner_of(project), student_of(assigned)
        milestone = await services.milestones.create(partner, proposal(project.id))

        steps = [
            (student, A.ACCEPT_PROPOSAL, S.ACCEPTED, E.PENDING),
            (partner, A.FINALIZE, S.FINALIZED, E.PENDING),
            (partner, A.FUND_ESCROW, S.FUNDED, E.FUNDED),
            (student, A.START_WORK, S.IN_PROGRESS, E.HELD),
            (student, A.SUBMIT, S.SUBMITTED, E.HELD),
            (partner, A.START_REVIEW, S.PARTNER_REVIEW, E.HELD),
            (partner, A.APPROVE_AND_RELEASE, S.RELEASED, E.RELEASED),
            (partner, A.MARK_COMPLETE, S.COMPLETED, E.RELEASED),
        ]
        for actor, action, status, escrow in steps:
            result = await services.milestones.transition(actor, milestone.id, action)
            assert (result.status, result.escrow_status) == (status.value, escrow.value)

        stored = await reload(db_session, milestone.id)
        assert stored.status == S.COMPLETED.value
        assert stored.version == len(steps) + 1

        entries, _cursor, _more = await services.milestones.history(partner, milestone.id)
        assert len(entries) == len(steps) + 1
        assert {e.action for e in entries} == {"create"} | {a.value for _, a, _, _ in steps}
        assert "milestone.released" in services.notifier.kinds()

    async def test_gated_review(self, db_session, services):
        """Supervisor opens and approves the review before the partner can release."""
        project, assigned = await create_assigned_project(db_session)
        milestone = await create_milestone(db_session, project, S.SUBMITTED, supervisor_gate=True)
        partner, supervisor = partner_of(project), supervisor_of(project)
        student = student_of(assigned)
        milestone_id = milestone.id

        with pytest.raises(ForbiddenError):
            await services.milestones.transition(partner, milestone_id, A.START_REVIEW)

        result = await services.milestones.transition(supervisor, milestone_id, A.START_REVIEW)
        assert result.status == S.SUPERVISOR_REVIEW.value

        with pytest.raises(InvalidTransitionError):
            await services.milestones.transition(partner, milestone_id, A.APPROVE_AND_RELEASE)

        result = await services.milestones.transition(
            supervisor, milestone_id, A.SUPERVISOR_APPROVE
        )
        assert result.status == S.PARTNER_REVIEW.value
        assert result.supervisor_approved_at is not None

        # A new review round needs a fresh approval
        await services.milestones.transition(
            partner, milestone_id, A.REQUEST_CHANGES, message="Add retry handling"
        )
        await services.milestones.transition(student, milestone_id, A.RESUME_WORK)
        await services.milestones.transition(student, milestone_id, A.SUBMIT)
        result = await services.milestones.transition(supervisor, milestone_id, A.START_REVIEW)
        assert result.status == S.SUPERVISOR_REVIEW.value
        assert result.supervisor_approved_at is None

        await services.milestones.transition(supervisor, milestone_id, A.SUPERVISOR_APPROVE)
        result = await services.milestones.transition(
            partner, milestone_id, A.APPROVE_AND_RELEASE
        )
        assert (result.status, result.escrow_status) == (S.RELEASED.value, E.RELEASED.value)

    async def test_request_changes_posts_to_working_group(self, db_session, services):
        project, assigned = await create_assigned_project(db_session)
        milestone = await create_milestone(db_session, project, S.PARTNER_REVIEW)

        await services.milestones.transition(
            partner_of(project), milestone.id, A.REQUEST_CHANGES, message="Fix the CSV parser"
        )

        event = services.notifier.events[-1]
        assert event.kind == "milestone.changes_requested"
        assert event.channel == "chat"
        assert event.payload["message"] == "Fix the CSV parser"
        assert set(event.recipients) == {project.supervisor_id, *assigned.student_uuids}

    async def test_release_and_disapprove(self, db_session, services):
        """Disapproving a release sends the milestone back to review with funds held."""
        project, _ = await create_assigned_project(db_session)
        milestone = await create_milestone(db_session, project, S.PARTNER_REVIEW)
        partner = partner_of(project)

        await services.milestones.transition(partner, milestone.id, A.APPROVE_AND_RELEASE)
        result = await services.milestones.transition(partner, milestone.id, A.DISAPPROVE)

        assert (result.status, result.escrow_status) == (S.PARTNER_REVIEW.value, E.HELD.value)
        assert (await reload(db_session, milestone.id)).version == 3

    async def test_supervisor_cannot_release(self, db_session, services):
        project, _ = await create_assigned_project(db_session)
        milestone = await create_milestone(db_session, project, S.PARTNER_REVIEW)

        with pytest.raises(ForbiddenError):
            await services.milestones.transition(
                supervisor_of(project), milestone.id, A.APPROVE_AND_RELEASE
            )

    async def test_unassigned_student_forbidden(self, db_session, services):
        project, _ = await create_assigned_project(db_session)
        milestone = await create_milestone(db_session, project, S.FUNDED)
        outsider = Actor(id=generate_uuid7(), role=ActorRole.STUDENT)

        with pytest.raises(ForbiddenError):
            await services.milestones.transition(outsider, milestone.id, A.START_WORK)

    async def test_stale_version_conflicts(self, db_session, services):
        project, _ = await create_assigned_project(db_session)
        milestone = await create_milestone(db_session, project, S.FINALIZED)
        partner = partner_of(project)
        milestone_id = milestone.id

        with pytest.raises(ConflictError):
            await services.milestones.transition(
                partner, milestone_id, A.FUND_ESCROW, expected_version=4
            )

        stored = await reload(db_session, milestone_id)
        assert (stored.status, stored.escrow_status) == (S.FINALIZED.value, E.PENDING.value)

    async def test_notifier_failure_keeps_transition(self, db_session, services, notifier):
        project, _ = await create_assigned_project(db_session)
        milestone = await create_milestone(db_session, project, S.FINALIZED)
        notifier.fail = True

        result = await services.milestones.transition(
            partner_of(project), milestone.id, A.FUND_ESCROW
        )

        assert result.status == S.FUNDED.value
        assert (await reload(db_session, milestone.id)).escrow_status == E.FUNDED.value

    async def test_allowed_actions_for_viewer(self, db_session, services):
        project, assigned = await create_assigned_project(db_session)
        milestone = await create_milestone(db_session, project, S.FUNDED)

        _, student_actions = await services.milestones.get(student_of(assigned), milestone.id)
        _, partner_actions = await services.milestones.get(partner_of(project), milestone.id)

        assert student_actions == {"start_work"}
        assert partner_actions == {"edit", "delete"}


class TestEditing:
    async def test_edit_before_work(self, db_session, services):
        project, _ = await create_assigned_project(db_session)
        milestone = await create_milestone(db_session, project, S.FUNDED)

        result = await services.milestones.update(
            partner_of(project),
            milestone.id,
            MilestoneUpdate(amount=Decimal("750.00"), title="  Revised scope  "),
        )

        assert result.version == 2
        stored = await reload(db_session, milestone.id)
        assert stored.amount == Decimal("750.00")
        assert stored.title == "Revised scope"

    async def test_edit_after_work_started(self, db_session, services):
        """Once work starts, edits fail and nothing changes."""
        project, _ = await create_assigned_project(db_session)
        milestone = await create_milestone(db_session, project, S.IN_PROGRESS)
        partner = partner_of(project)
        milestone_id, title = milestone.id, milestone.title

        with pytest.raises(NotEditableError):
            await services.milestones.update(
                partner, milestone_id, MilestoneUpdate(title="Sneaky change")
            )

        stored = await reload(db_session, milestone_id)
        assert stored.title == title
        assert stored.version == 1

    async def test_edit_with_past_due_date(self, db_session, services):
        project, _ = await create_assigned_project(db_session)
        milestone = await create_milestone(db_session, project, S.DRAFT)

        with pytest.raises(ValidationError):
            await services.milestones.update(
                partner_of(project),
                milestone.id,
                MilestoneUpdate(due_date=utc_now() - timedelta(days=2)),
            )

    async def test_enabling_gate_needs_project_supervisor(self, db_session, services):
        project = await create_project(db_session, supervisor_id=None)
        milestone = await create_milestone(db_session, project, S.DRAFT)
        milestone_id = milestone.id

        with pytest.raises(ValidationError, match="supervisor"):
            await services.milestones.update(
                partner_of(project), milestone_id, MilestoneUpdate(supervisor_gate=True)
            )

        stored = await reload(db_session, milestone_id)
        assert stored.supervisor_gate is False
        assert stored.version == 1

    async def test_delete_before_work(self, db_session, services):
        project, _ = await create_assigned_project(db_session)
        milestone = await create_milestone(db_session, project, S.DRAFT)
        partner = partner_of(project)

        await services.milestones.delete(partner, milestone.id)

        with pytest.raises(NotFoundError):
            await services.milestones.get(partner, milestone.id)

    async def test_completed_is_locked(self, db_session, services):
        """A completed milestone only allows unmarking completion."""
        project, _ = await create_assigned_project(db_session)
        milestone = await create_milestone(db_session, project, S.COMPLETED)
        partner = partner_of(project)
        milestone_id = milestone.id

        _, actions = await services.milestones.get(partner, milestone_id)
        assert actions == {"unmark_complete"}

        with pytest.raises(NotEditableError):
            await services.milestones.update(partner, milestone_id, MilestoneUpdate(title="New"))
        with pytest.raises(NotEditableError):
            await services.milestones.delete(partner, milestone_id)
        with pytest.raises(InvalidTransitionError):
            await services.milestones.dispute(partner, milestone_id, "Too late")

        result = await services.milestones.transition(partner, milestone_id, A.UNMARK_COMPLETE)
        assert (result.status, result.escrow_status) == (S.RELEASED.value, E.RELEASED.value)


class TestDisputes:
    async def test_dispute_keeps_status(self, db_session, services):
        project, assigned = await create_assigned_project(db_session)
        milestone = await create_milestone(db_session, project, S.IN_PROGRESS)
        student = student_of(assigned)

        dispute = await services.milestones.dispute(student, milestone.id, "Scope keeps growing")

        assert dispute.raised_by == student.id
        assert dispute.raised_by_role == "student"
        assert dispute.milestone_status == S.IN_PROGRESS.value
        stored = await reload(db_session, milestone.id)
        assert stored.status == S.IN_PROGRESS.value
        disputes = await services.milestones.disputes(student, milestone.id)
        assert [d.id for d in disputes] == [dispute.id]
        assert services.notifier.kinds() == ["milestone.disputed"]

    async def test_university_admin_can_dispute(self, db_session, services):
        project, _ = await create_assigned_project(db_session)
        milestone = await create_milestone(db_session, project, S.PARTNER_REVIEW)

        dispute = await services.milestones.dispute(
            admin_of(project), milestone.id, "Partner is unresponsive"
        )

        assert dispute.raised_by_role == "university-admin"

    async def test_no_dispute_before_work(self, db_session, services):
        project, _ = await create_assigned_project(db_session)
        milestone = await create_milestone(db_session, project, S.FUNDED)

        with pytest.raises(InvalidTransitionError):
            await services.milestones.dispute(partner_of(project), milestone.id, "Nope")


class TestReads:
    @pytest.mark.parametrize("role", [ActorRole.STUDENT, ActorRole.PARTNER, ActorRole.SUPERVISOR])
    async def test_unrelated_actor_cannot_read(self, db_session, services, role):
        project, _ = await create_assigned_project(db_session)
        milestone = await create_milestone(db_session, project, S.IN_PROGRESS)
        outsider = Actor(id=generate_uuid7(), role=role)

        with pytest.raises(ForbiddenError):
            await services.milestones.get(outsider, milestone.id)
        with pytest.raises(ForbiddenError):
            await services.milestones.list_by_project(outsider, project.id)
        with pytest.raises(ForbiddenError):
            await services.milestones.history(outsider, milestone.id)
        with pytest.raises(ForbiddenError):
            await services.milestones.disputes(outsider, milestone.id)

    async def test_project_participants_can_read(self, db_session, services):
        project, assigned = await create_assigned_project(db_session)
        milestone = await create_milestone(db_session, project, S.IN_PROGRESS)

        for actor in (
            partner_of(project),
            supervisor_of(project),
            admin_of(project),
            student_of(assigned),
            Actor(id=generate_uuid7(), role=ActorRole.SUPER_ADMIN),
        ):
            items, _cursor, _more = await services.milestones.list_by_project(actor, project.id)
            assert [m.id for m in items] == [milestone.id]

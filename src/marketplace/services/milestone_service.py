"""Milestone escrow service."""

from uuid import UUID

from src.marketplace.core.exceptions import ForbiddenError, NotFoundError
from src.marketplace.core.logging import get_logger
from src.marketplace.engine import milestones as machine
from src.marketplace.engine.permissions import (
    AccessContext,
    authorize_milestone,
    milestone_actions,
)
from src.marketplace.models import (
    ActorRole,
    Application,
    Dispute,
    EntityType,
    Milestone,
    MilestoneAction,
    MilestoneStatus,
    Project,
    TransitionLog,
)
from src.marketplace.models.base import as_naive_utc, utc_now
from src.marketplace.repositories import (
    ApplicationRepository,
    DisputeRepository,
    MilestoneRepository,
    ProjectRepository,
    TransitionLogRepository,
)
from src.marketplace.schemas import MilestoneCreate, MilestoneUpdate
from src.marketplace.services.access import Actor, build_access_context, project_participants
from src.marketplace.services.workflow import (
    DomainEvent,
    UnitOfWork,
    WorkflowCoordinator,
    check_expected_version,
)

logger = get_logger(__name__)

A = MilestoneAction

# Status-changing actions exposed as POST /milestones/{id}/<action>
TRANSITION_ACTIONS = frozenset(
    {
        A.SAVE_DRAFT,
        A.ACCEPT_PROPOSAL,
        A.FINALIZE,
        A.FUND_ESCROW,
        A.START_WORK,
        A.SUBMIT,
        A.START_REVIEW,
        A.SUPERVISOR_APPROVE,
        A.SUPERVISOR_REQUEST_CHANGES,
        A.APPROVE_AND_RELEASE,
        A.REQUEST_CHANGES,
        A.RESUME_WORK,
        A.DISAPPROVE,
        A.MARK_COMPLETE,
        A.UNMARK_COMPLETE,
    }
)

_EDITABLE_FIELDS = (
    "title",
    "scope",
    "acceptance_criteria",
    "due_date",
    "amount",
    "currency",
    "supervisor_gate",
)


class MilestoneService:
    """Service for the milestone lifecycle and its escrow state."""

    def __init__(
        self,
        project_repo: ProjectRepository,
        application_repo: ApplicationRepository,
        milestone_repo: MilestoneRepository,
        dispute_repo: DisputeRepository,
        log_repo: TransitionLogRepository,
        coordinator: WorkflowCoordinator,
    ):
        self.project_repo = project_repo
        self.application_repo = application_repo
        self.milestone_repo = milestone_repo
        self.dispute_repo = dispute_repo
        self.log_repo = log_repo
        self.coordinator = coordinator

    async def _get_project(self, project_id: UUID) -> Project:
        project = await self.project_repo.get_by_id(project_id)
        if project is None:
            raise NotFoundError(f"Project {project_id} not found")
        return project

    async def _load(
        self, actor: Actor, milestone_id: UUID
    ) -> tuple[Milestone, Project, Application | None, AccessContext]:
        milestone = await self.milestone_repo.get_for_update(milestone_id)
        if milestone is None:
            raise NotFoundError(f"Milestone {milestone_id} not found")
        project = await self._get_project(milestone.project_id)
        assigned = await self.application_repo.get_assigned(project.id)
        ctx = build_access_context(actor, project, assigned=assigned)
        return milestone, project, assigned, ctx

    @staticmethod
    def _event(
        kind: str,
        milestone: Milestone,
        recipients: set[UUID],
        channel: str = "email",
        **payload: object,
    ) -> DomainEvent:
        return DomainEvent(
            kind=kind,
            entity_type=EntityType.MILESTONE,
            entity_id=milestone.id,
            project_id=milestone.project_id,
            recipients=tuple(sorted(recipients, key=str)),
            channel=channel,
            payload={
                "status": milestone.status,
                "escrow_status": milestone.escrow_status,
                **payload,
            },
        )

    @staticmethod
    def _record(
        uow: UnitOfWork,
        milestone: Milestone,
        action: MilestoneAction,
        from_status: str | None,
        details: dict[str, object] | None = None,
    ) -> None:
        uow.record(
            EntityType.MILESTONE,
            milestone.id,
            action.value,
            from_status,
            milestone.status,
            project_id=milestone.project_id,
            details=details,
        )

    # --- Reads ---

    async def get(self, actor: Actor, milestone_id: UUID) -> tuple[Milestone, frozenset[str]]:
        """Get a milestone with the actions the actor may take on it right now."""
        milestone, _project, _assigned, ctx = await self._load(actor, milestone_id)
        self._ensure_can_view(ctx, milestone.project_id)
        return milestone, frozenset(a.value for a in milestone_actions(ctx, milestone))

    async def list_by_project(
        self,
        actor: Actor,
        project_id: UUID,
        cursor: str | None = None,
        limit: int = 50,
    ) -> tuple[list[Milestone], str | None, bool]:
        project = await self._get_project(project_id)
        assigned = await self.application_repo.get_assigned(project.id)
        self._ensure_can_view(build_access_context(actor, project, assigned=assigned), project.id)
        return await self.milestone_repo.list_by_project(project_id, cursor=cursor, limit=limit)

    async def history(
        self,
        actor: Actor,
        milestone_id: UUID,
        cursor: str | None = None,
        limit: int = 50,
    ) -> tuple[list[TransitionLog], str | None, bool]:
        milestone, _project, _assigned, ctx = await self._load(actor, milestone_id)
        self._ensure_can_view(ctx, milestone.project_id)
        return await self.log_repo.list_for_entity(
            EntityType.MILESTONE, milestone.id, cursor=cursor, limit=limit
        )

    async def disputes(self, actor: Actor, milestone_id: UUID) -> list[Dispute]:
        milestone, _project, _assigned, ctx = await self._load(actor, milestone_id)
        self._ensure_can_view(ctx, milestone.project_id)
        return await self.dispute_repo.list_by_milestone(milestone.id)

    @staticmethod
    def _ensure_can_view(ctx: AccessContext, project_id: UUID) -> None:
        if not (
            ctx.is_project_owner
            or ctx.is_project_supervisor
            or ctx.is_university_admin
            or ctx.is_assigned_student
            or ctx.role == ActorRole.SUPER_ADMIN
        ):
            raise ForbiddenError(
                "Not allowed to view this project's milestones", project_id=project_id
            )

    # --- Content ---

    async def create(self, actor: Actor, data: MilestoneCreate) -> Milestone:
        """Propose a milestone on a project.

        Raises:
            ForbiddenError: If the actor does not own the project
            ValidationError: If any field is invalid
        """
        async with self.coordinator.transaction() as uow:
            project = await self._get_project(data.project_id)
            assigned = await self.application_repo.get_assigned(project.id)
            ctx = build_access_context(actor, project, assigned=assigned)
            uow.actor = ctx
            authorize_milestone(ctx, A.CREATE)

            currency = (data.currency or project.currency).upper()
            due_date = as_naive_utc(data.due_date)
            machine.validate_fields(
                title=data.title,
                scope=data.scope,
                acceptance_criteria=data.acceptance_criteria,
                amount=data.amount,
                due_date=due_date,
                currency=currency,
                now=utc_now(),
                supervisor_gate=data.supervisor_gate,
                has_supervisor=project.supervisor_id is not None,
            )
            milestone = Milestone(
                project_id=project.id,
                title=data.title.strip(),
                scope=data.scope.strip(),
                acceptance_criteria=data.acceptance_criteria.strip(),
                due_date=due_date,
                amount=data.amount,
                currency=currency,
                supervisor_gate=data.supervisor_gate,
                status=MilestoneStatus.PROPOSED.value,
                escrow_status=machine.ESCROW_FOR_STATUS[MilestoneStatus.PROPOSED].value,
            )
            self.milestone_repo.add(milestone)
            self._record(uow, milestone, A.CREATE, None)
            uow.emit(
                self._event(
                    "milestone.proposed",
                    milestone,
                    project_participants(project, assigned) - {actor.id},
                )
            )

        logger.info(
            "Milestone proposed",
            milestone_id=str(milestone.id),
            project_id=str(project.id),
        )
        return milestone

    async def update(
        self, actor: Actor, milestone_id: UUID, data: MilestoneUpdate
    ) -> Milestone:
        """Edit milestone content before work starts.

        Raises:
            NotEditableError: If work has started; nothing is changed
            ConflictError: If the milestone changed since the client read it
        """
        async with self.coordinator.transaction() as uow:
            milestone, project, assigned, ctx = await self._load(actor, milestone_id)
            uow.actor = ctx
            authorize_milestone(ctx, A.EDIT, milestone)
            check_expected_version(milestone, data.expected_version)

            changes = {
                name: getattr(data, name)
                for name in _EDITABLE_FIELDS
                if getattr(data, name) is not None
            }
            if "currency" in changes:
                changes["currency"] = changes["currency"].upper()
            if "due_date" in changes:
                changes["due_date"] = as_naive_utc(changes["due_date"])
            for name in ("title", "scope", "acceptance_criteria"):
                if name in changes:
                    changes[name] = changes[name].strip()

            merged = {
                name: changes.get(name, getattr(milestone, name)) for name in _EDITABLE_FIELDS
            }
            machine.validate_fields(
                title=merged["title"],
                scope=merged["scope"],
                acceptance_criteria=merged["acceptance_criteria"],
                amount=merged["amount"],
                due_date=changes.get("due_date"),
                currency=merged["currency"],
                now=utc_now(),
                supervisor_gate=merged["supervisor_gate"],
                has_supervisor=project.supervisor_id is not None,
            )

            await self.milestone_repo.compare_and_swap(milestone, **changes)
            self._record(
                uow,
                milestone,
                A.EDIT,
                milestone.status,
                details={"fields": sorted(changes)},
            )
            uow.emit(
                self._event(
                    "milestone.updated",
                    milestone,
                    project_participants(project, assigned) - {actor.id},
                    fields=sorted(changes),
                )
            )
        return milestone

    async def delete(
        self, actor: Actor, milestone_id: UUID, expected_version: int | None = None
    ) -> None:
        """Delete a milestone before work starts.

        Raises:
            NotEditableError: If work has started
        """
        async with self.coordinator.transaction() as uow:
            milestone, project, assigned, ctx = await self._load(actor, milestone_id)
            uow.actor = ctx
            authorize_milestone(ctx, A.DELETE, milestone)
            check_expected_version(milestone, expected_version)
            from_status = milestone.status
            await self.milestone_repo.delete_at_version(milestone)
            uow.record(
                EntityType.MILESTONE,
                milestone.id,
                A.DELETE.value,
                from_status,
                None,
                project_id=milestone.project_id,
                details={"title": milestone.title},
            )
            uow.emit(
                self._event(
                    "milestone.deleted",
                    milestone,
                    project_participants(project, assigned) - {actor.id},
                )
            )

    # --- Lifecycle ---

    async def transition(
        self,
        actor: Actor,
        milestone_id: UUID,
        action: MilestoneAction,
        expected_version: int | None = None,
        message: str | None = None,
    ) -> Milestone:
        """Apply a lifecycle action; status and escrow status move together.

        Raises:
            ForbiddenError: If the actor can never perform the action
            InvalidTransitionError: If the current state does not allow it
            ConflictError: If the milestone changed since the client read it
        """
        if action not in TRANSITION_ACTIONS:
            raise ValueError(f"{action.value} is not a milestone lifecycle action")

        async with self.coordinator.transaction() as uow:
            milestone, project, assigned, ctx = await self._load(actor, milestone_id)
            uow.actor = ctx
            authorize_milestone(ctx, action, milestone)
            check_expected_version(milestone, expected_version)
            step = machine.transition(action, milestone)

            values: dict[str, object] = {
                "status": step.to_status.value,
                "escrow_status": step.escrow_status.value,
            }
            if action == A.SUPERVISOR_APPROVE:
                values["supervisor_approved_at"] = utc_now()
            elif step.to_status == MilestoneStatus.SUPERVISOR_REVIEW:
                # Each review round needs its own approval
                values["supervisor_approved_at"] = None

            await self.milestone_repo.compare_and_swap(milestone, **values)
            self._record(
                uow,
                milestone,
                action,
                step.from_status.value,
                details={"message": message} if message else None,
            )

            participants = project_participants(project, assigned) - {actor.id}
            if action == A.REQUEST_CHANGES:
                working_group = set(assigned.student_uuids) if assigned else set()
                if project.supervisor_id is not None:
                    working_group.add(project.supervisor_id)
                uow.emit(
                    self._event(
                        "milestone.changes_requested",
                        milestone,
                        working_group,
                        channel="chat",
                        message=message or "Changes were requested on this milestone.",
                    )
                )
            elif action == A.APPROVE_AND_RELEASE:
                uow.emit(self._event("milestone.released", milestone, participants))
            else:
                uow.emit(
                    self._event(
                        "milestone.transitioned",
                        milestone,
                        participants,
                        action=action.value,
                        from_status=step.from_status.value,
                    )
                )

        logger.info(
            "Milestone transitioned",
            milestone_id=str(milestone.id),
            action=action.value,
            status=milestone.status,
            escrow_status=milestone.escrow_status,
        )
        return milestone

    async def dispute(
        self,
        actor: Actor,
        milestone_id: UUID,
        reason: str,
        expected_version: int | None = None,
    ) -> Dispute:
        """Raise a dispute while work or review is underway. Status is unchanged."""
        async with self.coordinator.transaction() as uow:
            milestone, project, assigned, ctx = await self._load(actor, milestone_id)
            uow.actor = ctx
            authorize_milestone(ctx, A.DISPUTE, milestone)
            check_expected_version(milestone, expected_version)
            dispute = Dispute(
                milestone_id=milestone.id,
                raised_by=actor.id,
                raised_by_role=actor.role.value,
                reason=reason.strip(),
                milestone_status=milestone.status,
            )
            self.dispute_repo.add(dispute)
            self._record(
                uow,
                milestone,
                A.DISPUTE,
                milestone.status,
                details={"dispute_id": str(dispute.id)},
            )
            uow.emit(
                self._event(
                    "milestone.disputed",
                    milestone,
                    project_participants(project, assigned) - {actor.id},
                    dispute_id=str(dispute.id),
                )
            )

        logger.warning(
            "Milestone disputed",
            milestone_id=str(milestone.id),
            dispute_id=str(dispute.id),
        )
        return dispute

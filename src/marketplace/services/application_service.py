"""Application screening and assignment service."""

from dataclasses import replace
from datetime import datetime
from uuid import UUID

from src.marketplace.core.config import Settings, get_settings
from src.marketplace.core.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidTransitionError,
    InvariantViolationError,
    NotFoundError,
    ValidationError,
)
from src.marketplace.core.logging import get_logger
from src.marketplace.engine import applications as machine
from src.marketplace.engine.permissions import (
    AccessContext,
    application_actions,
    authorize_application,
    require_application_capability,
)
from src.marketplace.engine.scoring import (
    Score,
    ScoringWeights,
    compute_final_score,
    default_candidate,
    rank_applications,
    rescore,
    validate_manual_score,
)
from src.marketplace.models import (
    ActorRole,
    Application,
    ApplicationAction,
    ApplicationStatus,
    EntityType,
    Project,
    TransitionLog,
)
from src.marketplace.models.base import utc_now
from src.marketplace.repositories import (
    ApplicationRepository,
    ProjectRepository,
    TransitionLogRepository,
)
from src.marketplace.schemas import ApplicationSubmit
from src.marketplace.services.access import Actor, build_access_context
from src.marketplace.services.workflow import (
    DomainEvent,
    UnitOfWork,
    WorkflowCoordinator,
    check_expected_version,
)

logger = get_logger(__name__)

A = ApplicationAction

# Plain status moves: action -> (event kind, who hears about it)
_SIMPLE_TRANSITIONS: dict[ApplicationAction, tuple[str, str]] = {
    A.SHORTLIST: ("application.shortlisted", "students"),
    A.WAITLIST: ("application.waitlisted", "students"),
    A.RESET: ("application.reset", "students"),
    A.UNDO_REJECT: ("application.reinstated", "students"),
    A.WITHDRAW: ("application.withdrawn", "project"),
    A.TERMINATE: ("application.terminated", "project"),
    A.DECLINE_OFFER: ("application.offer_declined", "project"),
}

_VIEWER_ROLES = frozenset({ActorRole.SUPER_ADMIN})


class ApplicationService:
    """Service for application screening, assignment and scoring."""

    def __init__(
        self,
        project_repo: ProjectRepository,
        application_repo: ApplicationRepository,
        log_repo: TransitionLogRepository,
        coordinator: WorkflowCoordinator,
        settings: Settings | None = None,
    ):
        self.project_repo = project_repo
        self.application_repo = application_repo
        self.log_repo = log_repo
        self.coordinator = coordinator
        self.settings = settings or get_settings()
        self.weights = ScoringWeights.from_settings(self.settings)

    # --- Loading ---

    async def _get_project(self, project_id: UUID, lock: bool = False) -> Project:
        if lock:
            project = await self.project_repo.get_for_update(project_id)
        else:
            project = await self.project_repo.get_by_id(project_id)
        if project is None:
            raise NotFoundError(f"Project {project_id} not found")
        return project

    async def _get_application(self, application_id: UUID) -> Application:
        application = await self.application_repo.get_for_update(application_id)
        if application is None:
            raise NotFoundError(f"Application {application_id} not found")
        return application

    async def _load(
        self, actor: Actor, application_id: UUID
    ) -> tuple[Application, Project, AccessContext]:
        application = await self._get_application(application_id)
        project = await self._get_project(application.project_id)
        assigned = await self.application_repo.get_assigned(project.id)
        ctx = build_access_context(actor, project, application, assigned)
        return application, project, ctx

    # --- Events ---

    @staticmethod
    def _event(
        kind: str, application: Application, recipients: set[UUID] | list[UUID], **payload: object
    ) -> DomainEvent:
        return DomainEvent(
            kind=kind,
            entity_type=EntityType.APPLICATION,
            entity_id=application.id,
            project_id=application.project_id,
            recipients=tuple(sorted(set(recipients), key=str)),
            payload={"status": application.status, **payload},
        )

    @staticmethod
    def _project_side(project: Project) -> set[UUID]:
        recipients = {project.partner_id}
        if project.supervisor_id is not None:
            recipients.add(project.supervisor_id)
        return recipients

    async def _move(
        self,
        uow: UnitOfWork,
        application: Application,
        action_name: str,
        to_status: ApplicationStatus,
        details: dict[str, object] | None = None,
        **values: object,
    ) -> Application:
        """Compare-and-swap the status and record the transition."""
        from_status = application.status
        await self.application_repo.compare_and_swap(
            application, status=to_status.value, **values
        )
        uow.record(
            EntityType.APPLICATION,
            application.id,
            action_name,
            from_status,
            to_status.value,
            project_id=application.project_id,
            details=details,
        )
        return application

    # --- Reads ---

    async def get(
        self, actor: Actor, application_id: UUID
    ) -> tuple[Application, frozenset[str]]:
        """Get an application with the actions the actor may take on it."""
        application, _project, ctx = await self._load(actor, application_id)
        self._ensure_can_view(ctx, application)
        return application, frozenset(a.value for a in application_actions(ctx, application))

    async def ranked(
        self, actor: Actor, project_id: UUID
    ) -> tuple[list[Application], Application | None]:
        """Project applications in ranking order plus the advisory default candidate."""
        project = await self._get_project(project_id)
        ctx = build_access_context(actor, project)
        if not (
            ctx.is_project_owner
            or ctx.is_project_supervisor
            or ctx.is_university_admin
            or ctx.role in _VIEWER_ROLES
        ):
            raise ForbiddenError("Only project staff can list candidates", project_id=project_id)
        applications = await self.application_repo.list_by_project(project_id)
        return rank_applications(applications), default_candidate(applications)

    async def history(
        self,
        actor: Actor,
        application_id: UUID,
        cursor: str | None = None,
        limit: int = 50,
    ) -> tuple[list[TransitionLog], str | None, bool]:
        application, _project, ctx = await self._load(actor, application_id)
        self._ensure_can_view(ctx, application)
        return await self.log_repo.list_for_entity(
            EntityType.APPLICATION, application.id, cursor=cursor, limit=limit
        )

    @staticmethod
    def _ensure_can_view(ctx: AccessContext, application: Application) -> None:
        if not (
            ctx.is_application_member
            or ctx.is_project_owner
            or ctx.is_project_supervisor
            or ctx.is_university_admin
            or ctx.role in _VIEWER_ROLES
        ):
            raise ForbiddenError(
                "Not allowed to view this application", application_id=application.id
            )

    # --- Submission ---

    async def submit(self, actor: Actor, project_id: UUID, data: ApplicationSubmit) -> Application:
        """Submit an application, reactivating a rejected or declined one for the same students.

        Raises:
            ForbiddenError: If the actor is not a student
            ValidationError: If the applicant set or statement is malformed
            InvariantViolationError: If these students already have an active application
        """
        if actor.role != ActorRole.STUDENT:
            raise ForbiddenError("Only students can submit applications")
        machine.validate_submission(
            data.applicant_type, data.student_ids, data.group_id, data.statement, actor.id
        )

        async with self.coordinator.transaction() as uow:
            # Serializes submits per project for the active-application check below
            project = await self._get_project(project_id, lock=True)
            uow.actor = build_access_context(actor, project)
            existing = await self.application_repo.find_by_students(project_id, data.student_ids)

            active = [a for a in existing if a.status_enum not in machine.TERMINAL_STATUSES]
            if active:
                raise InvariantViolationError(
                    "These students already have an active application for this project",
                    application_id=active[0].id,
                )

            signals = data.signals
            if existing:
                application = existing[0]
                score = rescore(
                    replace(
                        Score.of(application),
                        skill_match=signals.skill_match,
                        rating_score=signals.rating_score,
                        on_time_rate=signals.on_time_rate,
                        rework_rate=signals.rework_rate,
                        portfolio_score=signals.portfolio_score,
                    ),
                    self.weights,
                )
                await self._move(
                    uow,
                    application,
                    "resubmit",
                    ApplicationStatus.SUBMITTED,
                    applicant_type=data.applicant_type.value,
                    group_id=data.group_id,
                    statement=data.statement,
                    attachments=data.attachments,
                    offer_expires_at=None,
                    skill_match=score.skill_match,
                    rating_score=score.rating_score,
                    on_time_rate=score.on_time_rate,
                    rework_rate=score.rework_rate,
                    portfolio_score=score.portfolio_score,
                    auto_score=score.auto_score,
                    final_score=score.final_score,
                )
            else:
                score = rescore(Score(**signals.model_dump()), self.weights)
                application = Application(
                    project_id=project_id,
                    applicant_type=data.applicant_type.value,
                    group_id=data.group_id,
                    student_ids=[str(s) for s in data.student_ids],
                    statement=data.statement,
                    attachments=data.attachments,
                    skill_match=score.skill_match,
                    rating_score=score.rating_score,
                    on_time_rate=score.on_time_rate,
                    rework_rate=score.rework_rate,
                    portfolio_score=score.portfolio_score,
                    auto_score=score.auto_score,
                    final_score=score.final_score,
                )
                self.application_repo.add(application)
                uow.record(
                    EntityType.APPLICATION,
                    application.id,
                    "submit",
                    None,
                    application.status,
                    project_id=project_id,
                )

            uow.emit(self._event("application.submitted", application, {project.partner_id}))

        logger.info(
            "Application submitted",
            application_id=str(application.id),
            project_id=str(project_id),
        )
        return application

    # --- Transitions ---

    async def transition(
        self,
        actor: Actor,
        application_id: UUID,
        action: ApplicationAction,
        expected_version: int | None = None,
    ) -> Application:
        """Apply a plain status move (shortlist, waitlist, reset, undo_reject,
        withdraw, terminate, decline_offer)."""
        if action not in _SIMPLE_TRANSITIONS:
            raise ValueError(f"{action.value} is not a plain application transition")
        kind, audience = _SIMPLE_TRANSITIONS[action]

        async with self.coordinator.transaction() as uow:
            application, project, ctx = await self._load(actor, application_id)
            uow.actor = ctx
            to_status = authorize_application(ctx, action, application)
            check_expected_version(application, expected_version)
            await self._move(uow, application, action.value, to_status, offer_expires_at=None)
            if audience == "students":
                recipients: set[UUID] | list[UUID] = application.student_uuids
            else:
                recipients = self._project_side(project)
            uow.emit(self._event(kind, application, recipients))
        return application

    async def offer(
        self,
        actor: Actor,
        application_id: UUID,
        offer_expires_at: datetime,
        expected_version: int | None = None,
    ) -> Application:
        async with self.coordinator.transaction() as uow:
            application, project, ctx = await self._load(actor, application_id)
            uow.actor = ctx
            to_status = authorize_application(ctx, A.OFFER, application)
            check_expected_version(application, expected_version)
            expires_at = machine.validate_offer_expiry(offer_expires_at, utc_now())
            siblings = await self.application_repo.list_by_project(project.id)
            machine.ensure_no_other_assigned(application.id, siblings)
            await self._move(
                uow,
                application,
                A.OFFER.value,
                to_status,
                details={"offer_expires_at": expires_at.isoformat()},
                offer_expires_at=expires_at,
            )
            uow.emit(
                self._event(
                    "application.offered",
                    application,
                    application.student_uuids,
                    offer_expires_at=expires_at.isoformat(),
                )
            )
        return application

    async def accept(
        self, actor: Actor, application_id: UUID, expected_version: int | None = None
    ) -> Application:
        """Assign the application to its project.

        Raises:
            InvariantViolationError: If another application is already assigned
        """
        return await self._assign(actor, application_id, A.ACCEPT, expected_version)

    async def accept_offer(
        self, actor: Actor, application_id: UUID, expected_version: int | None = None
    ) -> Application:
        """Student accepts an open offer, which assigns the application."""
        return await self._assign(actor, application_id, A.ACCEPT_OFFER, expected_version)

    async def _assign(
        self,
        actor: Actor,
        application_id: UUID,
        action: ApplicationAction,
        expected_version: int | None,
    ) -> Application:
        async with self.coordinator.transaction() as uow:
            application, project, ctx = await self._load(actor, application_id)
            uow.actor = ctx
            to_status = authorize_application(ctx, action, application)
            check_expected_version(application, expected_version)
            if action == A.ACCEPT_OFFER:
                machine.check_offer_open(application.offer_expires_at, utc_now())
            siblings = await self.application_repo.list_by_project(project.id)
            machine.ensure_no_other_assigned(application.id, siblings)
            await self._move(uow, application, action.value, to_status, offer_expires_at=None)
            uow.emit(self._event("application.assigned", application, application.student_uuids))
        logger.info(
            "Application assigned",
            application_id=str(application.id),
            project_id=str(application.project_id),
        )
        return application

    async def reject(
        self, actor: Actor, application_id: UUID, expected_version: int | None = None
    ) -> Application:
        """Reject an open application.

        Raises:
            InvariantViolationError: If this is the last candidate of an unassigned
                project and rejecting it is not allowed by configuration
        """
        async with self.coordinator.transaction() as uow:
            application, project, ctx = await self._load(actor, application_id)
            uow.actor = ctx
            to_status = authorize_application(ctx, A.REJECT, application)
            check_expected_version(application, expected_version)
            if not self.settings.allow_reject_last_candidate:
                siblings = await self.application_repo.list_by_project(project.id)
                if machine.is_last_open_candidate(application.id, siblings):
                    raise InvariantViolationError(
                        "Cannot reject the last remaining candidate of an unassigned project",
                        application_id=application.id,
                    )
            await self._move(uow, application, A.REJECT.value, to_status, offer_expires_at=None)
            uow.emit(self._event("application.rejected", application, application.student_uuids))
        return application

    async def reassign(
        self,
        actor: Actor,
        project_id: UUID,
        current_application_id: UUID,
        new_application_id: UUID,
        reject_previous: bool = False,
        expected_version: int | None = None,
    ) -> tuple[Application | None, Application]:
        """Atomically move the project's assignment to another application.

        ``current_application_id`` is the assignment the caller saw. When the
        project still has an assignee it must be that application, and both
        rows change in one transaction or neither does. When the assignee has
        since left (terminated), the new application is simply assigned and
        ``expected_version`` is not checked.

        Returns:
            Tuple of (displaced application or None, newly assigned application)

        Raises:
            ForbiddenError: If the actor may not assign on this project
            ConflictError: If a different application is assigned now
            InvalidTransitionError: If the new application is the assigned one
        """
        async with self.coordinator.transaction() as uow:
            project = await self._get_project(project_id)
            require_application_capability(build_access_context(actor, project), A.REASSIGN)

            current = await self.application_repo.get_assigned(project_id)
            if current is not None and current.id != current_application_id:
                raise ConflictError(
                    "Project assignment changed since it was last read",
                    project_id=project_id,
                    expected_application_id=current_application_id,
                )
            if current is not None and new_application_id == current.id:
                raise InvalidTransitionError(
                    "Application is already assigned", application_id=new_application_id
                )
            new = await self._get_application(new_application_id)
            if new.project_id != project_id:
                raise NotFoundError(
                    f"Application {new_application_id} not found in project {project_id}"
                )

            ctx = build_access_context(actor, project, new, current)
            uow.actor = ctx
            to_status = authorize_application(ctx, A.REASSIGN, new)

            details: dict[str, object] = {}
            if current is not None:
                check_expected_version(current, expected_version)
                # Release the slot before taking it
                await self._move(
                    uow,
                    current,
                    A.REASSIGN.value,
                    machine.displaced_status(reject_previous),
                    details={"replaced_by": str(new.id)},
                )
                details["replaces"] = str(current.id)
                uow.emit(self._event("application.unassigned", current, current.student_uuids))

            await self._move(
                uow,
                new,
                A.REASSIGN.value,
                to_status,
                details=details or None,
                offer_expires_at=None,
            )
            uow.emit(self._event("application.assigned", new, new.student_uuids))

        logger.info(
            "Application reassigned",
            project_id=str(project_id),
            from_application_id=str(current.id) if current is not None else None,
            to_application_id=str(new.id),
        )
        return current, new

    async def recommend(
        self, actor: Actor, application_id: UUID, partner_ids: list[UUID]
    ) -> Application:
        """Recommend an application to one or more partners. No status change."""
        recipients = list(dict.fromkeys(partner_ids))
        if not recipients:
            raise ValidationError("At least one partner is required")

        async with self.coordinator.transaction() as uow:
            application, _project, ctx = await self._load(actor, application_id)
            uow.actor = ctx
            status = authorize_application(ctx, A.RECOMMEND, application)
            uow.record(
                EntityType.APPLICATION,
                application.id,
                A.RECOMMEND.value,
                status.value,
                status.value,
                project_id=application.project_id,
                details={"partner_ids": [str(p) for p in recipients]},
            )
            uow.emit(self._event("application.recommended", application, recipients))
        return application

    async def score(
        self,
        actor: Actor,
        application_id: UUID,
        value: float,
        expected_version: int | None = None,
    ) -> Application:
        """Record the actor's manual score and recompute the final score.

        Partners record the partner score; supervisors and university admins
        the supervisor score. Each is settable once.
        """
        if actor.role == ActorRole.PARTNER:
            action, field = A.SCORE_AS_PARTNER, "manual_partner_score"
        elif actor.role in (ActorRole.SUPERVISOR, ActorRole.UNIVERSITY_ADMIN):
            action, field = A.SCORE_AS_SUPERVISOR, "manual_supervisor_score"
        else:
            raise ForbiddenError(f"Role {actor.role.value} cannot score applications")
        validate_manual_score(value)

        async with self.coordinator.transaction() as uow:
            application, _project, ctx = await self._load(actor, application_id)
            uow.actor = ctx
            status = authorize_application(ctx, action, application)
            check_expected_version(application, expected_version)
            if getattr(application, field) is not None:
                raise InvariantViolationError(
                    "Manual score already recorded for this role", field=field
                )
            score = replace(Score.of(application), **{field: value})
            final_score = compute_final_score(score, self.weights)
            await self.application_repo.compare_and_swap(
                application, **{field: value, "final_score": final_score}
            )
            uow.record(
                EntityType.APPLICATION,
                application.id,
                action.value,
                status.value,
                status.value,
                project_id=application.project_id,
                details={field: value, "final_score": final_score},
            )
        return application

"""Workflow coordinator - one transaction per multi-step transition.

Each mutating operation runs inside ``coordinator.transaction()``. Inside,
the service changes rows, records transitions and queues domain events. On a
clean exit the coordinator commits once and then hands the queued events to
the notifier. On any exception it rolls back, publishes nothing and re-raises.
"""

from collections.abc import AsyncGenerator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, Protocol
from uuid import UUID

from asgi_correlation_id import correlation_id
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.marketplace.core.exceptions import ConflictError, InvariantViolationError
from src.marketplace.core.logging import bind_transition, get_logger
from src.marketplace.engine.permissions import AccessContext
from src.marketplace.models import EntityType, TransitionLog
from src.marketplace.repositories import TransitionLogRepository

logger = get_logger(__name__)

_ASSIGNMENT_INDEX = "uq_applications_one_assigned_per_project"


def check_expected_version(entity: Any, expected_version: int | None) -> None:
    """Reject writes based on a stale read.

    Raises:
        ConflictError: If the client saw a different version than the stored one
    """
    if expected_version is not None and expected_version != entity.version:
        raise ConflictError(
            "Entity changed since it was last read",
            entity_id=entity.id,
            expected_version=expected_version,
            current_version=entity.version,
        )


@dataclass(frozen=True)
class DomainEvent:
    """Something that happened, addressed to the users who should hear about it."""

    kind: str  # e.g. "application.assigned", "milestone.released"
    entity_type: EntityType
    entity_id: UUID
    project_id: UUID
    recipients: tuple[UUID, ...]
    channel: str = "email"  # "chat" events go to the project's working group
    payload: dict[str, Any] = field(default_factory=dict)


class Notifier(Protocol):
    async def publish(self, events: Sequence[DomainEvent]) -> None: ...


class UnitOfWork:
    """Outbox and transition recorder for one coordinator transaction."""

    def __init__(self, log_repo: TransitionLogRepository, actor: AccessContext | None):
        self.log_repo = log_repo
        self.actor = actor
        self.events: list[DomainEvent] = []
        self.transitions: list[TransitionLog] = []

    def record(
        self,
        entity_type: EntityType,
        entity_id: UUID,
        action: str,
        from_status: str | None,
        to_status: str | None,
        project_id: UUID | None = None,
        details: dict[str, Any] | None = None,
    ) -> TransitionLog:
        """Add a transition log row to the current transaction."""
        entry = TransitionLog(
            entity_type=entity_type.value,
            entity_id=entity_id,
            project_id=project_id,
            action=action,
            from_status=from_status,
            to_status=to_status,
            actor_id=self.actor.actor_id if self.actor else None,
            actor_role=self.actor.role.value if self.actor else None,
            request_id=correlation_id.get(),
            details=details,
        )
        self.log_repo.add(entry)
        self.transitions.append(entry)
        return entry

    def emit(self, event: DomainEvent) -> None:
        """Queue an event; it is published only if the transaction commits."""
        if event.recipients:
            self.events.append(event)


class WorkflowCoordinator:
    """Runs service operations as a single atomic unit with post-commit events."""

    def __init__(
        self,
        session: AsyncSession,
        log_repo: TransitionLogRepository,
        notifier: Notifier | None = None,
    ):
        self.session = session
        self.log_repo = log_repo
        self.notifier = notifier

    @asynccontextmanager
    async def transaction(
        self, actor: AccessContext | None = None
    ) -> AsyncGenerator[UnitOfWork]:
        uow = UnitOfWork(self.log_repo, actor)
        try:
            yield uow
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            if _ASSIGNMENT_INDEX in str(e.orig) or "applications.project_id" in str(e.orig):
                raise InvariantViolationError(
                    "Project already has an assigned application"
                ) from e
            raise
        except BaseException:
            await self.session.rollback()
            raise

        for entry in uow.transitions:
            with bind_transition(entry.entity_type, entry.entity_id, entry.action):
                logger.info(
                    "Transition applied",
                    from_status=entry.from_status,
                    to_status=entry.to_status,
                )
        await self._publish(uow.events)

    async def _publish(self, events: list[DomainEvent]) -> None:
        if not events or self.notifier is None:
            return
        try:
            await self.notifier.publish(events)
        except Exception as e:
            # Delivery is best effort; the transition is already committed
            logger.warning(
                "Failed to publish notifications",
                events=[event.kind for event in events],
                error=str(e),
            )

"""Milestone model - a funded unit of project work."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid7

from sqlmodel import Field, SQLModel

from src.marketplace.models.base import utc_now
from src.marketplace.models.enums import EscrowStatus, MilestoneStatus


class Milestone(SQLModel, table=True):
    """Milestone with its escrow state.

    ``status`` and ``escrow_status`` are always written together by the
    milestone state machine so they cannot drift apart.
    """

    __tablename__ = "milestones"

    id: UUID = Field(default_factory=uuid7, primary_key=True)
    project_id: UUID = Field(foreign_key="projects.id", index=True)
    title: str = Field(max_length=200)
    scope: str = Field(max_length=5000)
    acceptance_criteria: str = Field(max_length=5000)
    due_date: datetime
    amount: Decimal = Field(max_digits=12, decimal_places=2)
    currency: str = Field(max_length=3)
    status: str = Field(default=MilestoneStatus.PROPOSED.value, max_length=30, index=True)
    escrow_status: str = Field(default=EscrowStatus.PENDING.value, max_length=20)
    supervisor_gate: bool = Field(default=False)
    supervisor_approved_at: datetime | None = Field(default=None)
    version: int = Field(default=1)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def status_enum(self) -> MilestoneStatus:
        """Get status as MilestoneStatus enum."""
        return MilestoneStatus(self.status)

    @property
    def escrow_status_enum(self) -> EscrowStatus:
        """Get escrow status as EscrowStatus enum."""
        return EscrowStatus(self.escrow_status)

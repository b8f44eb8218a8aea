"""Milestone schemas for API request/response."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import Field

from src.marketplace.models import EscrowStatus, Milestone, MilestoneStatus
from src.marketplace.schemas.base import CamelModel
from src.marketplace.schemas.common import VersionedRequest


class MilestoneCreate(CamelModel):
    """Schema for proposing a milestone. Currency defaults to the project's."""

    project_id: UUID
    title: str
    scope: str
    acceptance_criteria: str
    due_date: datetime
    amount: Decimal
    currency: str | None = None
    supervisor_gate: bool = False


class MilestoneUpdate(VersionedRequest):
    """Schema for editing a milestone before work starts. Omitted fields are kept."""

    title: str | None = None
    scope: str | None = None
    acceptance_criteria: str | None = None
    due_date: datetime | None = None
    amount: Decimal | None = None
    currency: str | None = None
    supervisor_gate: bool | None = None


class MilestoneActionRequest(VersionedRequest):
    """Body of a transition endpoint; ``message`` goes to the working group chat."""

    message: str | None = Field(default=None, max_length=5000)


class DisputeCreate(VersionedRequest):
    reason: str = Field(min_length=1, max_length=5000)


class MilestoneRead(CamelModel):
    """Schema for reading a milestone."""

    id: UUID
    project_id: UUID
    title: str
    scope: str
    acceptance_criteria: str
    due_date: datetime
    amount: Decimal
    currency: str
    status: MilestoneStatus
    escrow_status: EscrowStatus
    supervisor_gate: bool
    supervisor_approved_at: datetime | None
    version: int
    created_at: datetime
    updated_at: datetime
    allowed_actions: list[str] = Field(default_factory=list)

    @classmethod
    def from_model(
        cls, milestone: Milestone, allowed_actions: frozenset[str] | None = None
    ) -> "MilestoneRead":
        read = cls.model_validate(milestone)
        read.allowed_actions = sorted(allowed_actions or ())
        return read


class DisputeRead(CamelModel):
    id: UUID
    milestone_id: UUID
    raised_by: UUID
    raised_by_role: str
    reason: str
    milestone_status: MilestoneStatus
    created_at: datetime

"""Dispute raised against a milestone while work or review is underway."""

from datetime import datetime
from uuid import UUID, uuid7

from sqlmodel import Field, SQLModel

from src.marketplace.models.base import utc_now


class Dispute(SQLModel, table=True):
    """Dispute record. Raising one does not change the milestone status."""

    __tablename__ = "disputes"

    id: UUID = Field(default_factory=uuid7, primary_key=True)
    milestone_id: UUID = Field(foreign_key="milestones.id", index=True)
    raised_by: UUID = Field(index=True)
    raised_by_role: str = Field(max_length=30)
    reason: str = Field(max_length=5000)
    milestone_status: str = Field(max_length=30)  # MilestoneStatus value when raised
    created_at: datetime = Field(default_factory=utc_now)

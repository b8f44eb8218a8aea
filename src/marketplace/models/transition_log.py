"""Transition log - append-only audit trail of state machine transitions."""

from datetime import datetime
from typing import Any
from uuid import UUID, uuid7

from sqlalchemy import JSON, Column, Index
from sqlmodel import Field, SQLModel

from src.marketplace.models.base import utc_now


class TransitionLog(SQLModel, table=True):
    """One row per applied transition.

    Written in the same transaction as the transition it records, so a
    rolled back transition leaves no trace here.
    """

    __tablename__ = "transition_logs"
    __table_args__ = (
        Index("ix_transition_logs_entity", "entity_type", "entity_id"),
        Index("ix_transition_logs_project_created", "project_id", "created_at"),
    )

    id: UUID = Field(default_factory=uuid7, primary_key=True)

    # Subject
    entity_type: str = Field(max_length=20)  # EntityType value
    entity_id: UUID
    project_id: UUID | None = Field(default=None)

    # Transition
    action: str = Field(max_length=50)
    from_status: str | None = Field(default=None, max_length=30)
    to_status: str | None = Field(default=None, max_length=30)

    # Actor and request metadata
    actor_id: UUID | None = Field(default=None, index=True)
    actor_role: str | None = Field(default=None, max_length=30)
    request_id: str | None = Field(default=None, max_length=36)  # Correlation ID

    details: dict[str, Any] | None = Field(
        default=None,
        sa_column=Column(JSON, nullable=True),
    )

    created_at: datetime = Field(default_factory=utc_now)

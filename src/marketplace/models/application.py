"""Application model - an individual or group bid for a project."""

from datetime import datetime
from uuid import UUID, uuid7

from sqlalchemy import JSON, Column, Index, text
from sqlmodel import Field, SQLModel

from src.marketplace.models.base import utc_now
from src.marketplace.models.enums import ApplicantType, ApplicationStatus

_ASSIGNED_ONLY = text(f"status = '{ApplicationStatus.ASSIGNED.value}'")


class Application(SQLModel, table=True):
    """Application to a project.

    Score signals live on the row; ``final_score`` is recomputed whenever a
    manual score is recorded. The partial unique index enforces at most one
    ASSIGNED application per project at the storage level.
    """

    __tablename__ = "applications"
    __table_args__ = (
        Index(
            "uq_applications_one_assigned_per_project",
            "project_id",
            unique=True,
            postgresql_where=_ASSIGNED_ONLY,
            sqlite_where=_ASSIGNED_ONLY,
        ),
        Index("ix_applications_project_status", "project_id", "status"),
    )

    id: UUID = Field(default_factory=uuid7, primary_key=True)
    project_id: UUID = Field(foreign_key="projects.id", index=True)
    applicant_type: str = Field(default=ApplicantType.INDIVIDUAL.value, max_length=20)
    group_id: UUID | None = Field(default=None)
    student_ids: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    statement: str = Field(max_length=20000)
    attachments: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    status: str = Field(default=ApplicationStatus.SUBMITTED.value, max_length=20)
    offer_expires_at: datetime | None = Field(default=None)

    # Score signals
    skill_match: float = Field(default=0.0)
    rating_score: float = Field(default=0.0)
    on_time_rate: float = Field(default=0.0)
    rework_rate: float = Field(default=0.0)
    portfolio_score: float = Field(default=0.0)
    auto_score: float = Field(default=0.0)
    manual_partner_score: float | None = Field(default=None)
    manual_supervisor_score: float | None = Field(default=None)
    final_score: float = Field(default=0.0, index=True)

    version: int = Field(default=1)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def status_enum(self) -> ApplicationStatus:
        """Get status as ApplicationStatus enum."""
        return ApplicationStatus(self.status)

    @property
    def applicant_type_enum(self) -> ApplicantType:
        return ApplicantType(self.applicant_type)

    @property
    def student_uuids(self) -> list[UUID]:
        return [UUID(s) for s in self.student_ids]

    def has_member(self, student_id: UUID) -> bool:
        return str(student_id) in self.student_ids


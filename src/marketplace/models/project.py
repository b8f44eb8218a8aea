"""Project model - the unit applications compete for and milestones belong to."""

from datetime import datetime
from uuid import UUID, uuid7

from sqlmodel import Field, SQLModel

from src.marketplace.models.base import utc_now


class Project(SQLModel, table=True):
    """Project owned by a partner, scoped to a university course.

    ``capacity`` is the number of assignable teams; the engine enforces a
    single assigned application per project.
    """

    __tablename__ = "projects"

    id: UUID = Field(default_factory=uuid7, primary_key=True)
    title: str = Field(max_length=200, index=True)
    description: str | None = Field(default=None, max_length=5000)
    partner_id: UUID = Field(index=True)
    supervisor_id: UUID | None = Field(default=None, index=True)
    university_id: UUID | None = Field(default=None, index=True)
    department_id: UUID | None = Field(default=None)
    course_id: UUID | None = Field(default=None)
    capacity: int = Field(default=1, ge=1)
    currency: str = Field(default="USD", max_length=3)
    deadline: datetime | None = Field(default=None)
    version: int = Field(default=1)
    created_at: datetime = Field(default_factory=utc_now, index=True)
    updated_at: datetime = Field(default_factory=utc_now)

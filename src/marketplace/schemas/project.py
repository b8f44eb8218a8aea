"""Project schemas for API request/response."""

from datetime import datetime
from uuid import UUID

from pydantic import Field, field_validator

from src.marketplace.schemas.base import CamelModel


class ProjectCreate(CamelModel):
    """Schema for creating a project.

    ``partner_id`` is honoured only for super-admins; partners always own
    the projects they create.
    """

    title: str = Field(min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=5000)
    partner_id: UUID | None = None
    supervisor_id: UUID | None = None
    university_id: UUID | None = None
    department_id: UUID | None = None
    course_id: UUID | None = None
    capacity: int = Field(default=1, ge=1)
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    deadline: datetime | None = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Project title cannot be empty or whitespace only")
        return v

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: str | None) -> str | None:
        if v is not None:
            v = v.strip()
            if not v:
                return None
        return v


class ProjectRead(CamelModel):
    """Schema for reading a project."""

    id: UUID
    title: str
    description: str | None
    partner_id: UUID
    supervisor_id: UUID | None
    university_id: UUID | None
    department_id: UUID | None
    course_id: UUID | None
    capacity: int
    currency: str
    deadline: datetime | None
    version: int
    created_at: datetime
    updated_at: datetime

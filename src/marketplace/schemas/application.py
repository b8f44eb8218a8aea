"""Application schemas for API request/response."""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from src.marketplace.models import Application, ApplicantType, ApplicationStatus
from src.marketplace.schemas.base import CamelModel
from src.marketplace.schemas.common import VersionedRequest


class ScoreSignalsIn(CamelModel):
    """Score signals supplied with a submission by the profile collaborator."""

    skill_match: float = 0.0
    rating_score: float = 0.0
    on_time_rate: float = 0.0
    rework_rate: float = 0.0
    portfolio_score: float = 0.0


class ApplicationSubmit(CamelModel):
    """Schema for submitting (or resubmitting) an application."""

    applicant_type: ApplicantType = ApplicantType.INDIVIDUAL
    group_id: UUID | None = None
    student_ids: list[UUID]
    statement: str = Field(max_length=20000)
    attachments: list[str] = Field(default_factory=list)
    signals: ScoreSignalsIn = Field(default_factory=ScoreSignalsIn)


class OfferRequest(VersionedRequest):
    offer_expires_at: datetime


class ReassignRequest(VersionedRequest):
    """Move the assignment to ``new_application_id`` in one step."""

    new_application_id: UUID
    reject_previous: bool = False


class RecommendRequest(CamelModel):
    partner_ids: list[UUID]


class ManualScoreRequest(VersionedRequest):
    score: float


class ScoreRead(CamelModel):
    skill_match: float
    rating_score: float
    on_time_rate: float
    rework_rate: float
    portfolio_score: float
    auto_score: float
    manual_partner_score: float | None
    manual_supervisor_score: float | None
    final_score: float


class ApplicationRead(CamelModel):
    """Schema for reading an application."""

    id: UUID
    project_id: UUID
    applicant_type: ApplicantType
    group_id: UUID | None
    student_ids: list[UUID]
    statement: str
    attachments: list[str]
    status: ApplicationStatus
    offer_expires_at: datetime | None
    score: ScoreRead
    version: int
    created_at: datetime
    updated_at: datetime
    allowed_actions: list[str] = Field(default_factory=list)

    @classmethod
    def from_model(
        cls, application: Application, allowed_actions: frozenset[str] | None = None
    ) -> "ApplicationRead":
        return cls(
            id=application.id,
            project_id=application.project_id,
            applicant_type=application.applicant_type_enum,
            group_id=application.group_id,
            student_ids=application.student_uuids,
            statement=application.statement,
            attachments=application.attachments,
            status=application.status_enum,
            offer_expires_at=application.offer_expires_at,
            score=ScoreRead.model_validate(application),
            version=application.version,
            created_at=application.created_at,
            updated_at=application.updated_at,
            allowed_actions=sorted(allowed_actions or ()),
        )


class RankedApplicationsRead(CamelModel):
    """Applications in ranking order plus the advisory default candidate."""

    items: list[ApplicationRead]
    default_candidate_id: UUID | None = None

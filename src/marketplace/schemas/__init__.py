"""API request/response schemas (camelCase on the wire)."""

from src.marketplace.schemas.application import (
    ApplicationRead,
    ApplicationSubmit,
    ManualScoreRequest,
    OfferRequest,
    RankedApplicationsRead,
    ReassignRequest,
    RecommendRequest,
    ScoreRead,
    ScoreSignalsIn,
)
from src.marketplace.schemas.base import CamelModel
from src.marketplace.schemas.common import VersionedRequest
from src.marketplace.schemas.milestone import (
    DisputeCreate,
    DisputeRead,
    MilestoneActionRequest,
    MilestoneCreate,
    MilestoneRead,
    MilestoneUpdate,
)
from src.marketplace.schemas.pagination import PaginatedResponse
from src.marketplace.schemas.project import ProjectCreate, ProjectRead
from src.marketplace.schemas.transition_log import TransitionLogRead

__all__ = [
    "ApplicationRead",
    "ApplicationSubmit",
    "CamelModel",
    "DisputeCreate",
    "DisputeRead",
    "ManualScoreRequest",
    "MilestoneActionRequest",
    "MilestoneCreate",
    "MilestoneRead",
    "MilestoneUpdate",
    "OfferRequest",
    "PaginatedResponse",
    "ProjectCreate",
    "ProjectRead",
    "RankedApplicationsRead",
    "ReassignRequest",
    "RecommendRequest",
    "ScoreRead",
    "ScoreSignalsIn",
    "TransitionLogRead",
    "VersionedRequest",
]

"""Transition log schemas."""

from datetime import datetime
from typing import Any
from uuid import UUID

from src.marketplace.schemas.base import CamelModel


class TransitionLogRead(CamelModel):
    """One recorded transition."""

    id: UUID
    entity_type: str
    entity_id: UUID
    project_id: UUID | None
    action: str
    from_status: str | None
    to_status: str | None
    actor_id: UUID | None
    actor_role: str | None
    request_id: str | None
    details: dict[str, Any] | None
    created_at: datetime

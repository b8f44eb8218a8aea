"""Repository for Dispute entity."""

from uuid import UUID

from sqlmodel import select

from src.marketplace.models import Dispute
from src.marketplace.repositories.base import BaseRepository


class DisputeRepository(BaseRepository[Dispute]):
    """Repository for Dispute entity."""

    model = Dispute

    async def list_by_milestone(self, milestone_id: UUID) -> list[Dispute]:
        result = await self.session.execute(
            select(Dispute)
            .where(Dispute.milestone_id == milestone_id)
            .order_by(Dispute.created_at)  # type: ignore[arg-type]
        )
        return list(result.scalars().all())

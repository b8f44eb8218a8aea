"""Repository for TransitionLog entity."""

from uuid import UUID

from sqlmodel import select

from src.marketplace.models import EntityType, TransitionLog
from src.marketplace.repositories.base import BaseRepository


class TransitionLogRepository(BaseRepository[TransitionLog]):
    """Repository for the append-only transition log."""

    model = TransitionLog

    async def list_for_entity(
        self,
        entity_type: EntityType,
        entity_id: UUID,
        cursor: str | None = None,
        limit: int = 50,
    ) -> tuple[list[TransitionLog], str | None, bool]:
        """List transitions of one entity, newest first.

        Returns:
            Tuple of (logs, next_cursor, has_more)
        """
        query = select(TransitionLog).where(
            TransitionLog.entity_type == entity_type.value,
            TransitionLog.entity_id == entity_id,
        )
        return await self.paginate(query, cursor, limit)

"""Repository for User entity."""

from collections.abc import Iterable
from uuid import UUID

from sqlmodel import col, select

from src.marketplace.models import User
from src.marketplace.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Repository for User entity."""

    model = User

    async def get_active_by_ids(self, ids: Iterable[UUID]) -> list[User]:
        """Active users among ``ids``; unknown ids are skipped."""
        wanted = list(set(ids))
        if not wanted:
            return []
        result = await self.session.execute(
            select(User).where(col(User.id).in_(wanted), User.is_active == True)  # noqa: E712
        )
        return list(result.scalars().all())

"""Base repository with common CRUD operations."""

from typing import Any, cast
from uuid import UUID

from sqlalchemy import and_, or_, update
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value
from sqlmodel import SQLModel, select

from src.marketplace.core.exceptions import ConflictError
from src.marketplace.models.base import utc_now
from src.marketplace.schemas.pagination import decode_cursor, encode_cursor


class BaseRepository[ModelType: SQLModel]:
    """Base repository providing common database operations.

    Repositories handle data access only. Transaction control (commit)
    is done by the workflow coordinator in the service layer.
    """

    model: type[ModelType]

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, id: UUID) -> ModelType | None:
        """Get a record by its primary key."""
        result = await self.session.execute(
            select(self.model).where(self.model.id == id)  # type: ignore[attr-defined]
        )
        return result.scalar_one_or_none()

    async def get_for_update(self, id: UUID) -> ModelType | None:
        """Re-read a record inside the current transaction, locking the row.

        Bypasses the identity map so the version seen is the stored one.
        """
        result = await self.session.execute(
            select(self.model)
            .where(self.model.id == id)  # type: ignore[attr-defined]
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    def add(self, entity: ModelType) -> None:
        """Add entity to session (no flush/commit)."""
        self.session.add(entity)

    async def compare_and_swap(self, entity: ModelType, **values: Any) -> ModelType:
        """Write ``values`` only if the stored version still matches the entity's.

        Bumps ``version`` and ``updated_at``, then mirrors the written values
        onto ``entity`` without marking it dirty.

        Raises:
            ConflictError: If another writer changed the row first
        """
        expected_version: int = entity.version  # type: ignore[attr-defined]
        values = {**values, "version": expected_version + 1, "updated_at": utc_now()}
        result = await self.session.execute(
            update(self.model)
            .where(
                self.model.id == entity.id,  # type: ignore[attr-defined]
                self.model.version == expected_version,  # type: ignore[attr-defined]
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if cast(CursorResult[Any], result).rowcount == 0:
            raise ConflictError(
                f"{self.model.__name__} was modified concurrently",
                entity_id=entity.id,  # type: ignore[attr-defined]
                expected_version=expected_version,
            )
        for key, value in values.items():
            set_committed_value(entity, key, value)
        return entity

    async def paginate(
        self,
        query: Any,  # SelectOfScalar or Select - SQLModel/SQLAlchemy query
        cursor: str | None,
        limit: int,
    ) -> tuple[list[ModelType], str | None, bool]:
        """Newest-first keyset pagination over ``(created_at, id)``.

        Rows created in the same instant are ordered by id, so no row is
        skipped or repeated across pages. A cursor that does not decode
        restarts from the first page.

        Returns:
            Tuple of (items, next_cursor, has_more)
        """
        created_at = self.model.created_at  # type: ignore[attr-defined]
        id_column = self.model.id  # type: ignore[attr-defined]

        if cursor:
            try:
                last_created_at, last_id = decode_cursor(cursor)
            except ValueError:
                pass
            else:
                query = query.where(
                    or_(
                        created_at < last_created_at,
                        and_(created_at == last_created_at, id_column < last_id),
                    )
                )

        query = query.order_by(created_at.desc(), id_column.desc()).limit(limit + 1)

        result = await self.session.execute(query)
        items = list(result.scalars().all())

        has_more = len(items) > limit
        if has_more:
            items = items[:limit]

        next_cursor = None
        if has_more and items:
            last = items[-1]
            next_cursor = encode_cursor(last.created_at, last.id)  # type: ignore[attr-defined]

        return items, next_cursor, has_more

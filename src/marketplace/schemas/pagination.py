"""Page envelope and keyset cursor codec for list endpoints."""

import base64
import binascii
from datetime import datetime
from typing import Generic, TypeVar
from uuid import UUID

from pydantic import Field

from src.marketplace.schemas.base import CamelModel

T = TypeVar("T")

_SEPARATOR = "|"


class PaginatedResponse(CamelModel, Generic[T]):
    """One page of a newest-first listing."""

    items: list[T]
    next_cursor: str | None = Field(
        default=None,
        description="Opaque cursor for the next page; pass it back unchanged.",
    )
    has_more: bool = False


def encode_cursor(created_at: datetime, id: UUID) -> str:
    """Encode the position of the last row on a page."""
    raw = f"{created_at.isoformat()}{_SEPARATOR}{id}"
    return base64.urlsafe_b64encode(raw.encode()).decode()


def decode_cursor(cursor: str) -> tuple[datetime, UUID]:
    """Inverse of :func:`encode_cursor`.

    Raises:
        ValueError: If the cursor was not produced by ``encode_cursor``
    """
    try:
        raw = base64.urlsafe_b64decode(cursor.encode()).decode()
    except (binascii.Error, UnicodeDecodeError) as e:
        raise ValueError("Invalid cursor") from e
    created_at, sep, id = raw.partition(_SEPARATOR)
    if not sep:
        raise ValueError("Invalid cursor")
    return datetime.fromisoformat(created_at), UUID(id)

"""User projection used to resolve notification recipients."""

from datetime import datetime
from uuid import UUID, uuid7

from sqlmodel import Field, SQLModel

from src.marketplace.models.base import utc_now
from src.marketplace.models.enums import ActorRole


class User(SQLModel, table=True):
    """Platform user as provided by the identity collaborator."""

    __tablename__ = "users"

    id: UUID = Field(default_factory=uuid7, primary_key=True)
    email: str = Field(max_length=255, unique=True, index=True)
    full_name: str = Field(max_length=100)
    role: str = Field(default=ActorRole.STUDENT.value, max_length=30)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utc_now)

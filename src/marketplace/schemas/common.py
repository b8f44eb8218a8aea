"""Request fragments shared by the transition endpoints."""

from src.marketplace.schemas.base import CamelModel


class VersionedRequest(CamelModel):
    """Carries the version the client last saw, if it wants the write checked."""

    expected_version: int | None = None

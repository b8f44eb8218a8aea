"""Actor token utilities.

Tokens are minted by the identity collaborator; the engine only verifies them
and reads the acting user's id, role and university scope from the claims.
"""

from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from jose import JWTError, jwt

from src.marketplace.core.config import get_settings

ACTOR_TOKEN_TYPE = "access"


def create_actor_token(
    subject: str | UUID,
    role: str,
    university_id: str | UUID | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed actor token (used by service-to-service callers and tests)."""
    settings = get_settings()

    if expires_delta:
        expire = datetime.now(UTC) + expires_delta
    else:
        expire = datetime.now(UTC) + timedelta(minutes=settings.access_token_expire_minutes)

    to_encode: dict[str, Any] = {
        "sub": str(subject),
        "role": role,
        "exp": expire,
        "type": ACTOR_TOKEN_TYPE,
    }
    if university_id is not None:
        to_encode["university_id"] = str(university_id)

    return jwt.encode(  # type: ignore[no-any-return]
        to_encode,
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )


def decode_token(token: str) -> dict[str, Any] | None:
    """Decode and validate JWT token. Returns None on any error."""
    settings = get_settings()
    try:
        return jwt.decode(  # type: ignore[no-any-return]
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        return None

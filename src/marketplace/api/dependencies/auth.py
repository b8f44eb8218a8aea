"""Actor resolution from the identity collaborator's bearer token."""

from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status

from src.marketplace.core.logging import bind_actor_context
from src.marketplace.core.security import ACTOR_TOKEN_TYPE, decode_token
from src.marketplace.models import ActorRole
from src.marketplace.services.access import Actor


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_actor(
    authorization: Annotated[str | None, Header()] = None,
) -> Actor:
    """Validate the bearer token and return the acting user.

    Only identity and role come from the token; ownership is always derived
    from persisted project and application state.
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise _unauthorized("Missing or invalid authorization header")

    payload = decode_token(authorization[7:])
    if payload is None:
        raise _unauthorized("Invalid or expired token")

    if payload.get("type") != ACTOR_TOKEN_TYPE:
        raise _unauthorized("Invalid token type")

    subject = payload.get("sub")
    if not isinstance(subject, str):
        raise _unauthorized("Invalid token payload")
    try:
        actor_id = UUID(subject)
    except ValueError as e:
        raise _unauthorized("Invalid subject in token") from e

    try:
        role = ActorRole(payload.get("role"))
    except ValueError as e:
        raise _unauthorized("Invalid role in token") from e

    university_id = None
    if payload.get("university_id"):
        try:
            university_id = UUID(str(payload["university_id"]))
        except ValueError as e:
            raise _unauthorized("Invalid university_id in token") from e

    bind_actor_context(actor_id, role.value)
    return Actor(id=actor_id, role=role, university_id=university_id)


CurrentActor = Annotated[Actor, Depends(get_current_actor)]

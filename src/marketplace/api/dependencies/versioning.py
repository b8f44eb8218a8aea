"""Optimistic concurrency: the version the client last saw."""

from typing import Annotated

from fastapi import Depends, Header, HTTPException, status


def get_if_match_version(
    if_match: Annotated[str | None, Header()] = None,
) -> int | None:
    """Parse an ``If-Match`` header carrying an entity version.

    Accepts ``3``, ``"3"`` and ``W/"3"``.
    """
    if if_match is None:
        return None
    value = if_match.strip().removeprefix("W/").strip('"')
    try:
        return int(value)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="If-Match must carry an integer entity version",
        ) from e


IfMatchVersion = Annotated[int | None, Depends(get_if_match_version)]


def resolve_expected_version(body_version: int | None, header_version: int | None) -> int | None:
    """Prefer the body's ``expectedVersion``; fall back to ``If-Match``."""
    return body_version if body_version is not None else header_version

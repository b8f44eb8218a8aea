"""Async engine for the marketplace database."""

import ssl
from typing import Any

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from src.marketplace.core.config import Settings, get_settings

_engine: AsyncEngine | None = None

# ssl mode -> (check_hostname, verify_mode)
_SSL_MODES: dict[str, tuple[bool, ssl.VerifyMode]] = {
    "prefer": (False, ssl.CERT_NONE),
    "require": (False, ssl.CERT_NONE),
    "verify-ca": (False, ssl.CERT_REQUIRED),
    "verify-full": (True, ssl.CERT_REQUIRED),
}


def _ssl_context(mode: str) -> ssl.SSLContext | None:
    if mode == "disable":
        return None
    if mode not in _SSL_MODES:
        raise ValueError(f"Unknown database_ssl_mode: {mode}")
    check_hostname, verify_mode = _SSL_MODES[mode]
    context = ssl.create_default_context()
    context.check_hostname = check_hostname
    context.verify_mode = verify_mode
    return context


def engine_options(settings: Settings) -> dict[str, Any]:
    """Keyword arguments for ``create_async_engine`` matching the configured backend.

    SQLite (used by the test suite and local tooling) takes neither pool sizing
    nor TLS; Postgres gets both.
    """
    if make_url(settings.database_url).get_backend_name() == "sqlite":
        return {}

    options: dict[str, Any] = {
        "pool_size": settings.database_pool_size,
        "max_overflow": settings.database_max_overflow,
        "pool_pre_ping": True,
    }
    context = _ssl_context(settings.database_ssl_mode)
    if context is not None:
        options["connect_args"] = {"ssl": context}
    return options


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_async_engine(settings.database_url, **engine_options(settings))
    return _engine


async def dispose_engine() -> None:
    """Close pooled connections; called from the lifespan shutdown."""
    global _engine
    if _engine is not None:
        await _engine.dispose()
        _engine = None

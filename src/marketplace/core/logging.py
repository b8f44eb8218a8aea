"""structlog setup and log-context helpers.

Every request carries ``request_id``; authenticated requests add the actor.
Engine transitions are logged through :func:`bind_transition` so one line per
applied transition can be joined against the transition log table.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from uuid import UUID

import structlog
from structlog.contextvars import bind_contextvars, bound_contextvars, clear_contextvars

_QUIET_LOGGERS = ("sqlalchemy.engine", "httpx", "httpcore", "asyncio")


def setup_logging(debug: bool = False) -> None:
    """Configure structlog on top of stdlib logging.

    Args:
        debug: Colored console output when True, JSON lines otherwise.
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=logging.DEBUG if debug else logging.INFO,
    )

    processors: list[structlog.typing.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    renderer = (
        structlog.dev.ConsoleRenderer(colors=True)
        if debug
        else structlog.processors.JSONRenderer()
    )

    structlog.configure(
        processors=[*processors, renderer],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bind_request_context(request_id: str | None) -> None:
    if request_id:
        bind_contextvars(request_id=request_id)


def bind_actor_context(actor_id: UUID, role: str) -> None:
    """Attach the authenticated actor to the rest of the request's log lines."""
    bind_contextvars(actor_id=str(actor_id), actor_role=role)


@contextmanager
def bind_transition(entity_type: str, entity_id: UUID, action: str) -> Iterator[None]:
    """Scope log lines to one entity transition."""
    with bound_contextvars(entity_type=entity_type, entity_id=str(entity_id), action=action):
        yield


def clear_request_context() -> None:
    clear_contextvars()

"""Engine error taxonomy and exception handlers with request_id in responses."""

from typing import Any, ClassVar

from asgi_correlation_id import correlation_id
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.marketplace.core.logging import get_logger

logger = get_logger(__name__)


class EngineError(Exception):
    """Base class for errors surfaced to callers with a machine-readable code."""

    code: ClassVar[str] = "ENGINE_ERROR"
    status_code: ClassVar[int] = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str, **context: Any):
        super().__init__(detail)
        self.detail = detail
        self.context = context


class NotFoundError(EngineError):
    """Referenced project, application or milestone does not exist."""

    code = "NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND


class ForbiddenError(EngineError):
    """Actor's role or ownership never permits the requested action."""

    code = "FORBIDDEN"
    status_code = status.HTTP_403_FORBIDDEN


class InvalidTransitionError(EngineError):
    """The current state does not allow the requested action."""

    code = "INVALID_TRANSITION"
    status_code = status.HTTP_409_CONFLICT


class NotEditableError(InvalidTransitionError):
    """Milestone content can no longer change because work has started."""

    code = "NOT_EDITABLE"


class InvariantViolationError(EngineError):
    """The action would break a global invariant."""

    code = "INVARIANT_VIOLATION"
    status_code = status.HTTP_409_CONFLICT


class ConflictError(EngineError):
    """State changed since the caller's last read (optimistic concurrency)."""

    code = "CONFLICT"
    status_code = status.HTTP_409_CONFLICT


class ValidationError(EngineError):
    """Malformed input."""

    code = "VALIDATION_ERROR"
    status_code = 422


def _error_body(detail: Any, code: str) -> dict[str, Any]:
    return {
        "detail": detail,
        "code": code,
        "request_id": correlation_id.get(),
    }


def _http_code(status_code: int) -> str:
    return {
        status.HTTP_401_UNAUTHORIZED: "UNAUTHORIZED",
        status.HTTP_403_FORBIDDEN: "FORBIDDEN",
        status.HTTP_404_NOT_FOUND: "NOT_FOUND",
        status.HTTP_409_CONFLICT: "CONFLICT",
    }.get(status_code, "HTTP_ERROR")


def setup_exception_handlers(app: FastAPI) -> None:
    """Configure exception handlers that include code and request_id in responses."""

    @app.exception_handler(EngineError)
    async def engine_error_handler(request: Request, exc: EngineError) -> JSONResponse:
        logger.info(
            "Request rejected",
            code=exc.code,
            detail=exc.detail,
            path=request.url.path,
            **{k: str(v) for k, v in exc.context.items()},
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.detail, exc.code),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content=_error_body(
                [
                    {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
                    for err in exc.errors()
                ],
                ValidationError.code,
            ),
        )

    @app.exception_handler(StarletteHTTPException)
    async def starlette_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.detail, _http_code(exc.status_code)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.detail, _http_code(exc.status_code)),
            headers=exc.headers,
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        request_id = correlation_id.get()
        logger.exception(
            "Unhandled exception",
            exc_info=exc,
            request_id=request_id,
            path=request.url.path,
        )
        return JSONResponse(
            status_code=500,
            content={
                "detail": "Internal server error",
                "code": "INTERNAL_ERROR",
                "request_id": request_id,
            },
        )

"""Standard error handler — consistent error responses across all routes."""

from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..errors import AlertNotFoundError, InvalidAlertTransitionError, StorageError
from ..utils.logging import get_logger

logger = get_logger("middleware.error_handler")


def _error_response(status_code: int, detail, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": True,
            "status_code": status_code,
            "detail": detail,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            **extra,
        },
    )


def register_error_handlers(app: FastAPI) -> None:
    """Register standard error handlers on the app."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return _error_response(exc.status_code, exc.detail)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return _error_response(422, "Validation error", errors=jsonable_encoder(exc.errors()))

    @app.exception_handler(AlertNotFoundError)
    async def alert_not_found_handler(request: Request, exc: AlertNotFoundError):
        return _error_response(404, str(exc))

    @app.exception_handler(InvalidAlertTransitionError)
    async def invalid_transition_handler(request: Request, exc: InvalidAlertTransitionError):
        return _error_response(409, str(exc))

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        logger.error("storage_failed", stage="read_api", path=str(request.url.path), error=str(exc))
        return _error_response(503, "Storage unavailable")

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return _error_response(400, str(exc))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error(
            "unhandled_exception",
            error=str(exc),
            path=str(request.url.path),
            exc_info=True,
        )
        return _error_response(500, "Internal server error")

# guitarshare/middleware/error_handler.py
# Structured error handling
# Application errors carry a code and status and are rendered as one JSON envelope

import traceback
import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from guitarshare.utils.logger import log_exception

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base application error with structured response."""

    def __init__(
        self,
        message: str,
        error_code: str = "INTERNAL_ERROR",
        status_code: int = 500,
        details: dict = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}


class StorageError(AppError):
    """Record or blob store operation failed."""
    def __init__(self, message: str = "Storage operation failed", details: dict = None):
        super().__init__(
            message=message,
            error_code="STORAGE_ERROR",
            status_code=503,
            details=details
        )


class ValidationError(AppError):
    """Request validation failed."""
    def __init__(self, message: str = "Validation failed", details: dict = None):
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            status_code=400,
            details=details
        )


class NotFoundError(AppError):
    """Resource not found (also used for resources owned by someone else)."""
    def __init__(self, message: str = "Resource not found", details: dict = None):
        super().__init__(
            message=message,
            error_code="NOT_FOUND",
            status_code=404,
            details=details
        )


class GuitarGoneError(AppError):
    """A public share points at a guitar that has since been deleted."""
    def __init__(self, message: str = "Guitar no longer exists"):
        super().__init__(
            message=message,
            error_code="GUITAR_GONE",
            status_code=404,
        )


class UnauthorizedError(AppError):
    """Owner identity missing from the request."""
    def __init__(self, message: str = "Authentication required"):
        super().__init__(
            message=message,
            error_code="UNAUTHORIZED",
            status_code=401,
        )


def create_error_response(
    error_code: str,
    message: str,
    status_code: int,
    details: dict = None,
    request_id: str = None
) -> JSONResponse:
    """Create a standardized JSON error response."""
    content = {
        "error": {
            "code": error_code,
            "message": message,
        }
    }

    if details:
        content["error"]["details"] = details

    if request_id:
        content["error"]["request_id"] = request_id

    return JSONResponse(status_code=status_code, content=content)


def setup_exception_handlers(app, debug: bool = False):
    """Register exception handlers on FastAPI app."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        logger.warning(
            f"AppError: {exc.error_code} - {exc.message}",
            extra={"path": request.url.path}
        )
        return create_error_response(
            error_code=exc.error_code,
            message=exc.message,
            status_code=exc.status_code,
            details=exc.details,
            request_id=request.headers.get("X-Request-ID"),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        # Keep only location and message; input values may hold private data
        errors = [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
            for err in exc.errors()
        ]
        return create_error_response(
            error_code="VALIDATION_ERROR",
            message="Invalid request body",
            status_code=400,
            details={"errors": errors},
            request_id=request.headers.get("X-Request-ID"),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        log_exception(exc, context=f"Unhandled error on {request.url.path}")
        details = None
        if debug:
            details = {
                "type": type(exc).__name__,
                "traceback": traceback.format_exc()
            }
        return create_error_response(
            error_code="INTERNAL_ERROR",
            message="An internal error occurred. Please try again later.",
            status_code=500,
            details=details,
            request_id=request.headers.get("X-Request-ID"),
        )

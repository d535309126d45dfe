"""Global error handling.

Every exception is converted to one JSON shape:
``{error_code, message, user_message, suggestion, retry_allowed}``.
Upstream failures only ever expose the catalog text, never the provider's
error message.
"""

import logging

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from finsync.config import settings
from finsync.core.errors import ERROR_CATALOG
from finsync.core.exceptions import SyncProcessingError

logger = logging.getLogger(__name__)


def _error_body(
    error_code: str, message: str, user_message: str, suggestion: str, retry_allowed: bool
) -> dict:
    return {
        "error_code": error_code,
        "message": message,
        "user_message": user_message,
        "suggestion": suggestion,
        "retry_allowed": retry_allowed,
    }


async def handle_sync_processing_error(
    request: Request, exc: SyncProcessingError
) -> JSONResponse:
    """Handle coded sync and categorization exceptions.

    Args:
        request: The incoming request
        exc: The coded exception

    Returns:
        JSONResponse with error details from the catalog
    """
    error_info = ERROR_CATALOG.get(exc.error_code, {})

    # Details can carry upstream messages; only log them in debug.
    extra = {"error_code": exc.error_code, "path": request.url.path, "method": request.method}
    if settings.debug:
        extra["details"] = exc.details

    if exc.http_status >= 500:
        logger.error(f"Sync processing error: {exc.error_code}", extra=extra)
    else:
        logger.warning(f"Sync processing error: {exc.error_code}", extra=extra)

    return JSONResponse(
        status_code=exc.http_status,
        content=_error_body(
            exc.error_code,
            error_info.get("message", exc.error_code),
            error_info.get("user_message", "An error occurred"),
            error_info.get("suggestion", "Please try again later"),
            error_info.get("retry_allowed", False),
        ),
    )


async def handle_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle Pydantic validation errors.

    Args:
        request: The incoming request
        exc: The validation error

    Returns:
        JSONResponse with field-level messages
    """
    error_messages = []
    for error in exc.errors():
        field = ".".join(str(x) for x in error.get("loc", []))
        error_messages.append(f"{field}: {error.get('msg', 'Invalid value')}")

    logger.warning(
        f"Validation error on {request.url.path}",
        extra={"path": request.url.path, "method": request.method},
    )

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_error_body(
            "VAL_001",
            " | ".join(error_messages),
            "Invalid input data",
            "Please check your input and try again",
            True,
        ),
    )


async def handle_integrity_error(request: Request, exc: IntegrityError) -> JSONResponse:
    """Handle database integrity errors.

    Args:
        request: The incoming request
        exc: The integrity error

    Returns:
        JSONResponse with error details
    """
    # Do not log str(exc): it can include SQL and bound parameters.
    logger.error(
        f"Database integrity error on {request.url.path}",
        extra={"path": request.url.path, "method": request.method},
    )

    error_msg = str(exc).lower()
    if "unique" in error_msg or "duplicate" in error_msg:
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content=_error_body(
                "DB_002",
                "Resource already exists",
                "This record already exists",
                "Please check if the record was already created",
                False,
            ),
        )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(
            "DB_001",
            "Database operation failed",
            "A database error occurred",
            "Please try again later",
            True,
        ),
    )


async def handle_generic_error(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions without exposing internals."""
    extra = {
        "error_type": type(exc).__name__,
        "path": request.url.path,
        "method": request.method,
    }
    if settings.debug:
        logger.exception(f"Unexpected error on {request.url.path}", extra=extra)
    else:
        logger.error(f"Unexpected error on {request.url.path}", extra=extra)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(
            "SYS_001",
            "Internal server error",
            "An unexpected error occurred",
            "Please try again later or contact support",
            True,
        ),
    )

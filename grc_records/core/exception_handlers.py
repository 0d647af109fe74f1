"""Global exception handlers producing the ``{"error": {...}}`` envelope.

Status mapping:
- ValidationAppError -> 400
- AuthenticationAppError -> 403
- RateLimitExceededError -> 429 with ``Retry-After``
- FetchTimeoutError -> 504
- other OutboundFetchError -> 502
- StoreUnavailableError -> 503
- any other AppError -> 500
- unexpected Exception -> 500 with a generic message
"""

from __future__ import annotations

import logging
import math

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from grc_records.core.errors import (
    AppError,
    AuthenticationAppError,
    FetchTimeoutError,
    OutboundFetchError,
    RateLimitExceededError,
    StoreUnavailableError,
    ValidationAppError,
)
from grc_records.core.logging import get_request_id

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: tuple[tuple[type[AppError], int], ...] = (
    (ValidationAppError, 400),
    (AuthenticationAppError, 403),
    (RateLimitExceededError, 429),
    (FetchTimeoutError, 504),
    (OutboundFetchError, 502),
    (StoreUnavailableError, 503),
)


def status_code_for(exc: AppError) -> int:
    """HTTP status for an application error; unmapped types are a 500."""
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 500


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render an ``AppError`` as the error envelope, with Retry-After on 429."""

    status_code = status_code_for(exc)
    request_id = get_request_id()

    log = logger.error if status_code >= 500 else logger.warning
    log(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "retryable": exc.retryable,
            "request_path": request.url.path,
        },
    )

    error_content = {
        "code": exc.code,
        "message": exc.message,
        "request_id": request_id,
    }
    if exc.details:
        error_content["details"] = exc.details

    headers = {}
    if isinstance(exc, RateLimitExceededError):
        retry_after = (exc.details or {}).get("retry_after") or 1
        headers["Retry-After"] = str(max(1, math.ceil(retry_after)))

    return JSONResponse(
        status_code=status_code,
        content={"error": error_content},
        headers=headers or None,
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Safety net: log the failure, return a generic 500 without internals."""

    logger.error(
        "unhandled_exception",
        exc_info=exc,
        extra={
            "error_type": type(exc).__name__,
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "internal_server_error",
                "message": "An unexpected error occurred. Please try again later.",
                "request_id": get_request_id(),
            }
        },
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register the handlers on ``app``."""
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)

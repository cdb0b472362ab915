"""Exception handlers mapping every failure onto the ``{success, message, data}`` envelope.

Error responses always carry ``data.code`` (an ``ErrorCode`` value) so that
clients branch on the code rather than on the message text.
"""
import logging
from typing import Any
from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.constants import ErrorCode, GeneralErrorDetails

logger = logging.getLogger(__name__)

# Framework-raised statuses (unknown route, wrong method) and their codes
HTTP_STATUS_CODES: dict[int, ErrorCode] = {
    status.HTTP_404_NOT_FOUND: ErrorCode.NOT_FOUND,
    status.HTTP_405_METHOD_NOT_ALLOWED: ErrorCode.METHOD_NOT_ALLOWED,
}

# Request locations stripped from the front of a validation error path
_LOCATION_ROOTS = {"body", "query", "path", "header", "cookie"}


class AppException(Exception):
    """Application error rendered as an error envelope with the given status."""

    def __init__(self, message: str, status_code: int = 400, data: dict = None):
        self.message = message
        self.status_code = status_code
        self.data = data or {}
        super().__init__(self.message)

    @property
    def code(self) -> str | None:
        return self.data.get("code")


def error_response(
    status_code: int,
    message: str,
    code: str,
    headers: dict[str, str] | None = None,
    **extra: Any,
) -> JSONResponse:
    """Build an error envelope whose data holds ``code`` plus any ``extra`` fields."""
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "message": str(message),
            "data": {"code": str(code), **extra},
        },
        headers=headers,
    )


def _field_path(loc: tuple | list) -> str:
    parts = list(loc or ())
    if parts and parts[0] in _LOCATION_ROOTS:
        parts = parts[1:]
    return ".".join(str(part) for part in parts) or "unknown"


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Routing and framework errors (404 for unknown routes, 405 for wrong methods)."""
    code = HTTP_STATUS_CODES.get(exc.status_code, ErrorCode.HTTP_ERROR)
    return error_response(exc.status_code, exc.detail, code, headers=getattr(exc, "headers", None))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Request body and parameter validation failures, one entry per offending field."""
    error_details = []
    for error in exc.errors():
        message = error.get("msg", "")
        # pydantic prefixes messages raised from field validators
        message = message.removeprefix("Value error, ")
        error_details.append({"field": _field_path(error.get("loc")), "message": message})

    return error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        GeneralErrorDetails.VALIDATION_ERROR,
        ErrorCode.VALIDATION_ERROR,
        validation_errors=error_details,
    )


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    extra = {key: value for key, value in exc.data.items() if key != "code"}
    return error_response(exc.status_code, exc.message, exc.code or ErrorCode.HTTP_ERROR, **extra)


async def rate_limit_exception_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning("Rate limit exceeded for %s %s", request.method, request.url.path)
    return error_response(
        status.HTTP_429_TOO_MANY_REQUESTS,
        f"Rate limit exceeded: {exc.detail}",
        ErrorCode.RATE_LIMITED,
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Anything unhandled: logged with its traceback, reported to the caller as a bare 500."""
    logger.exception(
        "Unhandled exception occurred",
        extra={"path": request.url.path, "method": request.method}
    )

    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        GeneralErrorDetails.INTERNAL_SERVER_ERROR,
        ErrorCode.INTERNAL_ERROR,
    )

"""
Error types raised by the guards and services, and their JSON rendering.

Every error maps to one HTTP status and a stable ``error`` code so callers
can branch on the code rather than parse the detail text.
"""
from typing import Any, Dict, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse


class AppException(Exception):
    """Base class; subclasses pick the status code and error code."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_type = "APP_ERROR"
    default_detail = "Internal error"

    def __init__(
        self,
        detail: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        status_code: Optional[int] = None,
    ):
        self.detail = detail or self.default_detail
        self.headers = headers
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.detail)


class ValidationError(AppException):
    """Malformed input or a mutation that would break a role invariant."""

    status_code = status.HTTP_400_BAD_REQUEST
    error_type = "VALIDATION_ERROR"
    default_detail = "Invalid input"

    def __init__(self, detail: Optional[str] = None, field: Optional[str] = None):
        self.field = field
        super().__init__(detail)


class DuplicateRoleError(ValidationError):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, name: str):
        super().__init__(f"Role name '{name}' already exists", field="name")


class NotFoundError(AppException):
    status_code = status.HTTP_404_NOT_FOUND
    error_type = "NOT_FOUND"
    default_detail = "Resource not found"


class CsrfError(AppException):
    """CSRF token absent, malformed or mismatched."""

    status_code = status.HTTP_403_FORBIDDEN
    error_type = "CSRF_ERROR"
    default_detail = "Invalid CSRF token"


class RateLimitedError(AppException):
    """Client exceeded a rate limit (CSRF failures or role mutations) within the current window."""

    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    error_type = "RATE_LIMITED"
    default_detail = "Too many CSRF validation failures. Please try again later."

    def __init__(self, retry_after: int, detail: Optional[str] = None):
        self.retry_after = retry_after
        super().__init__(detail, headers={"Retry-After": str(retry_after)})


class AuthenticationRequiredError(AppException):
    status_code = status.HTTP_401_UNAUTHORIZED
    error_type = "AUTHENTICATION_ERROR"
    default_detail = "Not authenticated"


class InsufficientPermissionsError(AppException):
    status_code = status.HTTP_403_FORBIDDEN
    error_type = "AUTHORIZATION_ERROR"
    default_detail = "Insufficient permissions"


def error_response(exc: AppException) -> JSONResponse:
    """
    Render an AppException as ``{"error", "detail"[, "field"]}``.

    Middleware calls this directly since it runs outside FastAPI's
    exception handlers.
    """
    content: Dict[str, Any] = {"error": exc.error_type, "detail": exc.detail}
    field = getattr(exc, "field", None)
    if field:
        content["field"] = field
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    return error_response(exc)

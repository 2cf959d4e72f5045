"""
HTTP middleware for request correlation and CSRF protection.
"""
import uuid
from typing import Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from roleguard.core.audit_utils import get_client_id
from roleguard.core.exceptions import CsrfError, RateLimitedError, error_response
from roleguard.core.logging import bind_request_context, clear_request_context, get_logger
from roleguard.core.rate_limiter import FixedWindowRateLimiter, get_csrf_failure_limiter
from roleguard.core.security import (
    has_api_key_bypass,
    is_route_excluded_from_csrf,
    requires_csrf_validation,
    validate_csrf_request,
)

logger = get_logger(__name__)


async def correlation_id_middleware(request: Request, call_next):
    """Add correlation ID to request state, log context and response headers."""
    correlation_id = request.headers.get("X-Correlation-ID") or str(uuid.uuid4())
    request.state.correlation_id = correlation_id

    bind_request_context(
        correlation_id=correlation_id,
        request_method=request.method,
        request_path=request.url.path,
        client_ip=request.client.host if request.client else None,
    )
    try:
        response = await call_next(request)
    finally:
        clear_request_context()

    response.headers["X-Correlation-ID"] = correlation_id
    return response


class CsrfProtectionMiddleware(BaseHTTPMiddleware):
    """
    Double-submit cookie check for state-changing requests.

    Safe methods, excluded auth routes and API-key requests pass through.
    Clients with too many recent failures are answered with 429 before the
    token pair is looked at.
    """

    def __init__(self, app, limiter: Optional[FixedWindowRateLimiter] = None):
        super().__init__(app)
        self._limiter = limiter

    @property
    def limiter(self) -> FixedWindowRateLimiter:
        if self._limiter is None:
            self._limiter = get_csrf_failure_limiter()
        return self._limiter

    async def dispatch(self, request: Request, call_next):
        if (
            not requires_csrf_validation(request.method)
            or is_route_excluded_from_csrf(request.url.path)
            or has_api_key_bypass(request)
        ):
            return await call_next(request)

        client_id = get_client_id(request)

        if self.limiter.is_rate_limited(client_id):
            retry_after = self.limiter.retry_after(client_id)
            logger.warning(
                "csrf_rate_limited",
                client_ip=client_id,
                path=request.url.path,
                retry_after=retry_after,
            )
            return error_response(RateLimitedError(retry_after=retry_after))

        error = validate_csrf_request(request)
        if error is not None:
            limited = self.limiter.record_failure(client_id)
            logger.warning(
                "csrf_validation_failed",
                client_ip=client_id,
                method=request.method,
                path=request.url.path,
                reason=error,
                failure_count=self.limiter.failure_count(client_id),
                rate_limited=limited,
            )
            return error_response(CsrfError(error))

        return await call_next(request)

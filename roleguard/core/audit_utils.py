"""
Helpers extracting client context from requests for audit rows and
per-client rate limiting.
"""

from typing import Optional

from fastapi import Request

from roleguard.core.config import settings


UNKNOWN_CLIENT = "unknown"


def get_client_ip(request: Optional[Request]) -> Optional[str]:
    """
    Extract the client IP address from a request.

    X-Forwarded-For (first hop) and X-Real-IP are only believed when the
    socket peer is one of the configured trusted proxies; otherwise the peer
    address itself is the client.

    Args:
        request: FastAPI Request object

    Returns:
        Client IP address as string, or None if not available
    """
    if request is None:
        return None

    peer = request.client.host if request.client and request.client.host else None
    if peer is not None and peer not in settings.trusted_proxies_list:
        return peer

    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        first_hop = forwarded_for.split(",")[0].strip()
        if first_hop:
            return first_hop

    real_ip = request.headers.get("X-Real-IP")
    if real_ip and real_ip.strip():
        return real_ip.strip()

    return peer


def get_client_id(request: Request) -> str:
    """Rate-limit key for a request: its client IP, or a shared bucket when unknown."""
    return get_client_ip(request) or UNKNOWN_CLIENT


def get_user_agent(request: Optional[Request]) -> Optional[str]:
    """Extract the User-Agent header, truncated to the audit column size."""
    if request is None:
        return None
    user_agent = request.headers.get("User-Agent")
    return user_agent[:500] if user_agent else None


def get_correlation_id(request: Optional[Request]) -> Optional[str]:
    """Correlation ID stored on request.state by correlation_id_middleware."""
    if request is None:
        return None
    return getattr(request.state, "correlation_id", None)

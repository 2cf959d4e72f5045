"""
CSRF protection using the double-submit cookie pattern.

Tokens are 32 random bytes hex-encoded to 64 lowercase characters. The
same value is stored in a JavaScript-readable cookie and echoed back by the
client in a request header on state-changing requests.
"""
import hmac
import re
import secrets
from typing import Optional

from fastapi import Request, Response

from roleguard.core.config import settings


CSRF_TOKEN_PATTERN = re.compile(r"^[0-9a-f]{64}$")

# Methods that require CSRF validation
CSRF_PROTECTED_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})

# Pre-authentication routes, matched exactly
CSRF_EXCLUDED_ROUTES = frozenset({
    "/api/auth/login",
    "/api/auth/register",
    "/api/auth/forgot-password",
    "/api/auth/reset-password",
    "/api/auth/verify-email",
    "/api/auth/verify-unlock",
    "/api/auth/request-unlock",
    "/api/auth/resend-verification",
})

# Token-based route families, matched by prefix
CSRF_EXCLUDED_PREFIXES = (
    "/api/auth/oauth/",
    "/api/invites/",
)


def generate_csrf_token() -> str:
    """
    Generate a cryptographically secure CSRF token.

    Returns:
        64-character lowercase hex string
    """
    return secrets.token_hex(settings.csrf_token_bytes)


def is_valid_token_format(token: Optional[str]) -> bool:
    """Check that a token is exactly 64 lowercase hex characters."""
    if not isinstance(token, str):
        return False
    return CSRF_TOKEN_PATTERN.fullmatch(token) is not None


def validate_csrf_token(cookie_token: Optional[str], header_token: Optional[str]) -> bool:
    """
    Validate that the cookie and header tokens match.

    Format is checked before comparison so malformed values never validate,
    even when both sides are equal.

    Args:
        cookie_token: Token from the CSRF cookie
        header_token: Token from the CSRF header

    Returns:
        True if both tokens are well-formed and equal
    """
    if not cookie_token or not header_token:
        return False

    if not is_valid_token_format(cookie_token) or not is_valid_token_format(header_token):
        return False

    if len(cookie_token) != len(header_token):
        return False

    return hmac.compare_digest(cookie_token.encode("ascii"), header_token.encode("ascii"))


def requires_csrf_validation(method: str) -> bool:
    """Check if a request method is state-changing."""
    return method.upper() in CSRF_PROTECTED_METHODS


def is_route_excluded_from_csrf(path: str) -> bool:
    """
    Check if a route is excluded from CSRF validation.

    Exact matches cover the pre-authentication endpoints; prefix entries cover
    OAuth callbacks and invitation-token paths.
    """
    if path in CSRF_EXCLUDED_ROUTES:
        return True
    return path.startswith(CSRF_EXCLUDED_PREFIXES)


def has_api_key_bypass(request: Request) -> bool:
    """
    Check if the request carries a non-empty API key header.

    Only presence is checked here. The key itself is validated by the route
    handler, which is a separate trust boundary.
    """
    api_key = request.headers.get(settings.api_key_header_name)
    return bool(api_key and api_key.strip())


def get_csrf_token_from_cookie(request: Request) -> Optional[str]:
    """Get the CSRF token from the request cookie."""
    return request.cookies.get(settings.csrf_cookie_name) or None


def get_csrf_token_from_header(request: Request) -> Optional[str]:
    """Get the CSRF token from the request header."""
    return request.headers.get(settings.csrf_header_name) or None


def validate_csrf_request(request: Request) -> Optional[str]:
    """
    Validate the CSRF token pair carried by a request.

    Returns:
        None if valid, otherwise a client-safe error message
    """
    cookie_token = get_csrf_token_from_cookie(request)
    header_token = get_csrf_token_from_header(request)

    if not cookie_token or not header_token:
        return "CSRF token missing"

    if not validate_csrf_token(cookie_token, header_token):
        return "Invalid CSRF token"

    return None


def set_csrf_cookie(response: Response, token: str) -> None:
    """Attach the CSRF cookie to a response, overwriting any prior value."""
    response.set_cookie(
        key=settings.csrf_cookie_name,
        value=token,
        max_age=settings.csrf_cookie_max_age,
        path="/",
        secure=settings.csrf_cookie_secure_flag,
        httponly=False,
        samesite="strict",
    )


def clear_csrf_cookie(response: Response) -> None:
    """Remove the CSRF cookie (logout)."""
    response.delete_cookie(
        key=settings.csrf_cookie_name,
        path="/",
        secure=settings.csrf_cookie_secure_flag,
        httponly=False,
        samesite="strict",
    )


def rotate_csrf_token(response: Response) -> str:
    """
    Issue a fresh CSRF token on a response.

    Call at authentication and after sensitive actions (password change,
    2FA changes, linked account changes).

    Returns:
        The new token
    """
    token = generate_csrf_token()
    set_csrf_cookie(response, token)
    return token

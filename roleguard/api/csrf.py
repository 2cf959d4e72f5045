"""
CSRF token issuance.
"""
from typing import Dict

from fastapi import APIRouter, Response, status

from roleguard.core.security import clear_csrf_cookie, rotate_csrf_token

router = APIRouter(prefix="/csrf-token", tags=["CSRF"])


@router.get(
    "",
    summary="Issue a CSRF token",
    description="Sets a fresh token cookie and returns the same value for the request header",
)
async def issue_csrf_token(response: Response) -> Dict[str, str]:
    """Issue a CSRF token."""
    token = rotate_csrf_token(response)
    return {"csrf_token": token}


@router.delete(
    "",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Clear the CSRF token cookie",
)
async def clear_csrf_token() -> Response:
    """Clear the CSRF cookie, e.g. on logout."""
    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    clear_csrf_cookie(response)
    return response

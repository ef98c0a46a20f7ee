from typing import Optional

from fastapi import Header, HTTPException, Request, status

from inboxpilot.config import settings
from inboxpilot.services.business_context import BusinessContextCache


def get_context_cache(request: Request) -> BusinessContextCache:
    """The cache instance created at startup and stored on the app."""
    return request.app.state.context_cache


def require_admin_token(x_admin_token: Optional[str] = Header(default=None, alias="X-Admin-Token")) -> None:
    expected = settings.admin_token
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="ADMIN_TOKEN not configured",
        )
    if not x_admin_token or x_admin_token != expected:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid admin token")

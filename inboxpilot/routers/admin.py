"""Admin endpoints for operating the service."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from inboxpilot.dependencies import get_context_cache, require_admin_token
from inboxpilot.services.business_context import BusinessContextCache

router = APIRouter(prefix="/admin", tags=["admin"])


class InvalidateResponse(BaseModel):
    success: bool
    business_id: Optional[str] = None
    cached_entries: int


@router.post(
    "/context-cache/invalidate",
    response_model=InvalidateResponse,
    dependencies=[Depends(require_admin_token)],
)
def invalidate_context_cache(
    business_id: Optional[str] = Query(default=None),
    context_cache: BusinessContextCache = Depends(get_context_cache),
):
    """Drop cached tenant config after it was edited elsewhere."""
    context_cache.invalidate(business_id)
    return InvalidateResponse(success=True, business_id=business_id, cached_entries=len(context_cache))

import re
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from inboxpilot.database import get_db
from inboxpilot.schemas.usage import UsageCounters, UsageResponse
from inboxpilot.services.usage_service import get_usage_counters

router = APIRouter(tags=["usage"])

PERIOD_RE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


@router.get("/usage/{business_id}", response_model=UsageResponse)
def get_usage(business_id: str, period: Optional[str] = Query(default=None), db: Session = Depends(get_db)):
    if period is not None and not PERIOD_RE.match(period):
        raise HTTPException(status_code=400, detail="period must be YYYY-MM")
    usage = get_usage_counters(db, business_id, period)
    return UsageResponse(business_id=business_id, period=usage["period"], counters=UsageCounters(**usage["counters"]))

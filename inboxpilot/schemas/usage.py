from pydantic import BaseModel


class UsageCounters(BaseModel):
    conversations_24h: int = 0
    qualified_leads: int = 0


class UsageResponse(BaseModel):
    business_id: str
    period: str
    counters: UsageCounters

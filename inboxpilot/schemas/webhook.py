from typing import Optional

from pydantic import BaseModel


class StageErrorSchema(BaseModel):
    stage: str
    code: str
    detail: Optional[str] = None


class MessageResult(BaseModel):
    conversation_id: str
    status: str  # processed, partial, echo, duplicate, failed
    intent: Optional[str] = None
    reply_rule: Optional[str] = None
    response_sent: bool = False
    delivery_error: Optional[str] = None
    flyer_sent: bool = False
    qualified: bool = False
    lead_id: Optional[str] = None
    errors: list[StageErrorSchema] = []


class WebhookResponse(BaseModel):
    success: bool
    message: str
    received: int = 0
    processed: int = 0
    sent: int = 0
    failed: int = 0
    results: list[MessageResult] = []

from inboxpilot.schemas.message import Channel, NormalizedMessage
from inboxpilot.schemas.usage import UsageResponse
from inboxpilot.schemas.webhook import MessageResult, StageErrorSchema, WebhookResponse

__all__ = [
    "Channel",
    "NormalizedMessage",
    "MessageResult",
    "StageErrorSchema",
    "WebhookResponse",
    "UsageResponse",
]

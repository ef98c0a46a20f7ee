from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class Channel(str, Enum):
    WHATSAPP = "whatsapp"
    INSTAGRAM = "instagram"


class NormalizedMessage(BaseModel):
    """Canonical inbound message produced from a platform webhook payload."""

    model_config = ConfigDict(frozen=True)

    business_id: str
    channel: Channel
    conversation_id: str
    sender_name: Optional[str] = None
    sender_handle: Optional[str] = None
    message_text: str
    timestamp: datetime  # always UTC
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def conversation_key(self) -> str:
        return self.sender_handle or self.conversation_id

    @property
    def provider_message_id(self) -> Optional[str]:
        value = self.metadata.get("message_id") or self.metadata.get("message_mid")
        return str(value) if value else None

    @property
    def is_outbound(self) -> bool:
        return self.metadata.get("direction") == "outbound"

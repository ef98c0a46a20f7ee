"""Manual replies typed by a human operator into an existing thread."""

import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from inboxpilot.database import utcnow
from inboxpilot.errors import PersistenceError
from inboxpilot.logging_config import get_logger
from inboxpilot.models import ConversationThread
from inboxpilot.schemas.message import Channel, NormalizedMessage
from inboxpilot.services.channel_service import get_integration_config, send_text
from inboxpilot.services.thread_service import record_outbound_message

logger = get_logger("operator_reply_service")

OPERATOR_SENDER_NAME = "Agent"
MANUAL_REPLY_SOURCE = "manual_reply"


class ThreadNotFound(LookupError):
    pass


@dataclass
class OperatorReplyResult:
    thread_id: uuid.UUID
    sent: bool
    error: Optional[str] = None
    provider_message_id: Optional[str] = None


def get_thread(db: Session, business_id: str, thread_id: uuid.UUID) -> Optional[ConversationThread]:
    return (
        db.query(ConversationThread)
        .filter(ConversationThread.id == thread_id, ConversationThread.business_id == business_id)
        .first()
    )


def _thread_message(thread: ConversationThread, text: str) -> NormalizedMessage:
    # No sender handle: the conversation key then resolves to the thread's own key.
    return NormalizedMessage(
        business_id=thread.business_id,
        channel=Channel(thread.channel),
        conversation_id=thread.conversation_key,
        sender_name=thread.contact_name,
        message_text=text,
        timestamp=utcnow(),
    )


def send_operator_reply(db: Session, business_id: str, thread_id: uuid.UUID, text: str) -> OperatorReplyResult:
    """Send ``text`` to the thread's contact and append it to the thread.

    The message is recorded whether or not the channel accepted it; the send
    status lands in the message metadata. Commit is left to the caller.
    """
    try:
        thread = get_thread(db, business_id, thread_id)
    except SQLAlchemyError as exc:
        raise PersistenceError("Failed to load thread") from exc
    if thread is None:
        raise ThreadNotFound(f"Thread {thread_id} not found")

    recipient = thread.contact_handle or thread.conversation_key
    send = send_text(get_integration_config(db, business_id), thread.channel, recipient, text)

    record_outbound_message(
        db,
        _thread_message(thread, text),
        text,
        provider_message_id=send.provider_message_id,
        metadata={
            "source": MANUAL_REPLY_SOURCE,
            "provider_message_id": send.provider_message_id,
            "status": "sent" if send.sent else "failed",
        },
        sender_name=OPERATOR_SENDER_NAME,
    )
    logger.info(
        "Operator reply recorded",
        extra={
            "context": {
                "business_id": business_id,
                "thread_id": str(thread_id),
                "channel": thread.channel,
                "sent": send.sent,
            }
        },
    )
    return OperatorReplyResult(
        thread_id=thread.id,
        sent=send.sent,
        error=send.error,
        provider_message_id=send.provider_message_id,
    )

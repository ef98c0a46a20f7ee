import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from inboxpilot.database import dialect_insert, utcnow
from inboxpilot.errors import PersistenceError
from inboxpilot.logging_config import get_logger
from inboxpilot.models import ConversationThread, Message, ThreadMessage
from inboxpilot.schemas.message import NormalizedMessage
from inboxpilot.services.echo_service import claim_inbound_event

logger = get_logger("thread_service")

OUTBOUND_SENDER_NAME = "Chatbot"


@dataclass
class RecordedMessage:
    thread_id: Optional[uuid.UUID]
    duplicate: bool = False


def ensure_thread(
    db: Session,
    message: NormalizedMessage,
    *,
    direction: str,
    text: str,
    timestamp: datetime,
    intent: Optional[str] = None,
) -> uuid.UUID:
    """Create or update the thread for this conversation in one statement.

    Relies on the unique (business_id, channel, conversation_key) constraint,
    so concurrent deliveries for a new conversation still end with one row.
    """
    inbound = direction == "inbound"
    now = utcnow()
    stmt = dialect_insert(db, ConversationThread).values(
        id=uuid.uuid4(),
        business_id=message.business_id,
        channel=message.channel.value,
        conversation_key=message.conversation_key,
        contact_name=message.sender_name,
        contact_handle=message.sender_handle,
        status="open",
        unread_count=1 if inbound else 0,
        last_message_text=text,
        last_message_direction=direction,
        last_message_at=timestamp,
        last_intent=intent,
        created_at=now,
        updated_at=now,
    )
    excluded = stmt.excluded
    stmt = stmt.on_conflict_do_update(
        index_elements=["business_id", "channel", "conversation_key"],
        set_={
            "contact_name": func.coalesce(ConversationThread.contact_name, excluded.contact_name),
            "contact_handle": func.coalesce(ConversationThread.contact_handle, excluded.contact_handle),
            "status": "open",
            "unread_count": ConversationThread.unread_count + 1 if inbound else 0,
            "last_message_text": excluded.last_message_text,
            "last_message_direction": excluded.last_message_direction,
            "last_message_at": excluded.last_message_at,
            "last_intent": func.coalesce(excluded.last_intent, ConversationThread.last_intent),
            "updated_at": excluded.updated_at,
        },
    ).returning(ConversationThread.id)
    return db.execute(stmt).scalar_one()


def record_message(
    db: Session,
    message: NormalizedMessage,
    *,
    direction: str,
    text: str,
    timestamp: datetime,
    sender_name: Optional[str],
    sender_handle: Optional[str],
    intent: Optional[str] = None,
    metadata: Optional[dict] = None,
    provider_message_id: Optional[str] = None,
    message_type: str = "text",
    media_asset_id: Optional[uuid.UUID] = None,
    file_url: Optional[str] = None,
) -> RecordedMessage:
    """Upsert the thread, then append to the thread log and the flat log.

    Nothing is committed here; the caller owns the transaction so a failure in
    either write leaves no partial state behind.
    """
    now = utcnow()
    try:
        thread_id = ensure_thread(db, message, direction=direction, text=text, timestamp=timestamp, intent=intent)

        db.add(
            ThreadMessage(
                thread_id=thread_id,
                business_id=message.business_id,
                channel=message.channel.value,
                direction=direction,
                sender_name=sender_name,
                sender_handle=sender_handle,
                message_text=text,
                message_type=message_type,
                media_asset_id=media_asset_id,
                file_url=file_url,
                provider_message_id=provider_message_id,
                message_metadata=metadata or {},
                sent_at=timestamp,
                created_at=now,
            )
        )
        db.flush()

        db.add(
            Message(
                business_id=message.business_id,
                conversation_id=message.conversation_key,
                channel=message.channel.value,
                direction=direction,
                sender=sender_name or sender_handle,
                message_text=text,
                message_type=message_type,
                media_asset_id=media_asset_id,
                file_url=file_url,
                timestamp=timestamp,
                created_at=now,
            )
        )
        db.flush()
    except SQLAlchemyError as exc:
        logger.error(
            "Failed to record message",
            extra={"context": {"business_id": message.business_id, "direction": direction, "error": str(exc)}},
        )
        raise PersistenceError(f"Failed to record {direction} message") from exc

    return RecordedMessage(thread_id=thread_id)


def record_inbound_message(db: Session, message: NormalizedMessage, intent: Optional[str] = None) -> RecordedMessage:
    if not claim_inbound_event(db, message):
        logger.info(
            "Duplicate inbound delivery ignored",
            extra={"context": {"business_id": message.business_id, "provider_message_id": message.provider_message_id}},
        )
        return RecordedMessage(thread_id=None, duplicate=True)

    return record_message(
        db,
        message,
        direction="inbound",
        text=message.message_text,
        timestamp=message.timestamp,
        sender_name=message.sender_name,
        sender_handle=message.sender_handle,
        intent=intent,
        metadata=dict(message.metadata),
        provider_message_id=message.provider_message_id,
    )


def record_outbound_message(
    db: Session,
    message: NormalizedMessage,
    text: str,
    *,
    provider_message_id: Optional[str] = None,
    metadata: Optional[dict] = None,
    message_type: str = "text",
    media_asset_id: Optional[uuid.UUID] = None,
    file_url: Optional[str] = None,
    sender_name: str = OUTBOUND_SENDER_NAME,
) -> RecordedMessage:
    """Record a reply to ``message``. Resets the thread's unread count."""
    return record_message(
        db,
        message,
        direction="outbound",
        text=text,
        timestamp=utcnow(),
        sender_name=sender_name,
        sender_handle=None,
        metadata={"direction": "outbound", **(metadata or {})},
        provider_message_id=provider_message_id,
        message_type=message_type,
        media_asset_id=media_asset_id,
        file_url=file_url,
    )


def recent_messages(
    db: Session,
    business_id: str,
    conversation_key: str,
    channel: str,
    limit: int = 4,
) -> list[Message]:
    """Latest messages of a conversation, newest first."""
    return (
        db.query(Message)
        .filter(
            Message.business_id == business_id,
            Message.conversation_id == conversation_key,
            Message.channel == channel,
        )
        .order_by(Message.timestamp.desc(), Message.created_at.desc())
        .limit(limit)
        .all()
    )


def conversation_history(db: Session, business_id: str, conversation_key: str) -> list[Message]:
    """Full flat log of a conversation in send order."""
    return (
        db.query(Message)
        .filter(Message.business_id == business_id, Message.conversation_id == conversation_key)
        .order_by(Message.timestamp.asc(), Message.created_at.asc())
        .all()
    )

"""Drop webhook events that reflect our own sends or were already delivered."""

import uuid

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from inboxpilot.database import dialect_insert, utcnow
from inboxpilot.errors import PersistenceError
from inboxpilot.logging_config import get_logger
from inboxpilot.models import ProcessedEvent, ThreadMessage
from inboxpilot.schemas.message import Channel, NormalizedMessage

logger = get_logger("echo_service")


def is_echo(db: Session, message: NormalizedMessage) -> bool:
    """True when the message id matches an outbound message we already sent."""
    if message.channel != Channel.WHATSAPP or message.is_outbound:
        return False

    provider_id = message.provider_message_id
    if not provider_id:
        return False

    stmt = (
        select(ThreadMessage.id)
        .where(
            ThreadMessage.business_id == message.business_id,
            ThreadMessage.direction == "outbound",
            ThreadMessage.provider_message_id == provider_id,
        )
        .limit(1)
    )
    found = db.execute(stmt).first() is not None
    if found:
        logger.info(
            "Echo detected",
            extra={"context": {"business_id": message.business_id, "provider_message_id": provider_id}},
        )
    return found


def claim_inbound_event(db: Session, message: NormalizedMessage) -> bool:
    """Record the provider message id; False when it was seen before."""
    provider_id = message.provider_message_id
    if not provider_id:
        return True

    stmt = (
        dialect_insert(db, ProcessedEvent)
        .values(
            id=uuid.uuid4(),
            business_id=message.business_id,
            channel=message.channel.value,
            provider_message_id=provider_id,
            received_at=utcnow(),
        )
        .on_conflict_do_nothing(index_elements=["business_id", "channel", "provider_message_id"])
    )
    try:
        result = db.execute(stmt)
    except SQLAlchemyError as exc:
        raise PersistenceError("Failed to claim inbound event") from exc
    return result.rowcount > 0

import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from inboxpilot.database import utcnow
from inboxpilot.errors import PersistenceError
from inboxpilot.logging_config import get_logger
from inboxpilot.models import FlyerSendLog, MediaAsset
from inboxpilot.schemas.message import Channel, NormalizedMessage
from inboxpilot.services.business_context import BusinessContext
from inboxpilot.services.channel_service import IntegrationConfig, send_image
from inboxpilot.services.thread_service import record_outbound_message

logger = get_logger("flyer_service")

FLYER_ASSET_TYPE = "services_flyer"


@dataclass
class FlyerResult:
    sent: bool
    reason: str  # sent, channel, cooldown, no_asset, send_failed
    media_asset_id: Optional[uuid.UUID] = None
    error: Optional[str] = None


def get_default_flyer(db: Session, business_id: str) -> Optional[MediaAsset]:
    return (
        db.query(MediaAsset)
        .filter(
            MediaAsset.business_id == business_id,
            MediaAsset.asset_type == FLYER_ASSET_TYPE,
            MediaAsset.is_default.is_(True),
            MediaAsset.is_active.is_(True),
        )
        .order_by(MediaAsset.created_at.desc())
        .first()
    )


def flyer_on_cooldown(db: Session, business_id: str, conversation_id: str, cooldown_hours: int) -> bool:
    since = utcnow() - timedelta(hours=cooldown_hours)
    recent = (
        db.query(FlyerSendLog.id)
        .filter(
            FlyerSendLog.business_id == business_id,
            FlyerSendLog.conversation_id == conversation_id,
            FlyerSendLog.sent_at >= since,
        )
        .first()
    )
    return recent is not None


def maybe_send_flyer(
    db: Session,
    message: NormalizedMessage,
    context: BusinessContext,
    integration: IntegrationConfig,
) -> FlyerResult:
    """Send the tenant's services flyer once per cooldown window per conversation."""
    if message.channel != Channel.WHATSAPP:
        return FlyerResult(sent=False, reason="channel")

    conversation_id = message.conversation_key
    try:
        if flyer_on_cooldown(db, message.business_id, conversation_id, context.flyer_cooldown_hours):
            return FlyerResult(sent=False, reason="cooldown")
        asset = get_default_flyer(db, message.business_id)
    except SQLAlchemyError as exc:
        raise PersistenceError("Failed to look up flyer state") from exc
    if asset is None:
        return FlyerResult(sent=False, reason="no_asset")

    send = send_image(integration, message.sender_handle, asset.file_url, asset.caption)
    if not send.sent:
        return FlyerResult(sent=False, reason="send_failed", media_asset_id=asset.id, error=send.error)

    try:
        db.add(
            FlyerSendLog(
                business_id=message.business_id,
                conversation_id=conversation_id,
                media_asset_id=asset.id,
                sent_at=utcnow(),
            )
        )
        db.flush()
    except SQLAlchemyError as exc:
        raise PersistenceError("Failed to log flyer send") from exc

    record_outbound_message(
        db,
        message,
        asset.caption or "[image]",
        provider_message_id=send.provider_message_id,
        metadata={"reply_to": message.provider_message_id, "status": "sent", "asset_type": FLYER_ASSET_TYPE},
        message_type="image",
        media_asset_id=asset.id,
        file_url=asset.file_url,
    )
    logger.info(
        "Flyer sent",
        extra={"context": {"business_id": message.business_id, "media_asset_id": str(asset.id)}},
    )
    return FlyerResult(sent=True, reason="sent", media_asset_id=asset.id)

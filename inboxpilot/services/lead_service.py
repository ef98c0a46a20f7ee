import re
import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from inboxpilot.database import dialect_insert, utcnow
from inboxpilot.errors import PersistenceError
from inboxpilot.logging_config import get_logger
from inboxpilot.models import ConversationThread, Lead
from inboxpilot.schemas.message import Channel, NormalizedMessage
from inboxpilot.services.customer_service import resolve_customer
from inboxpilot.services.intent_service import SALES_INTENTS, Intent, classify_intent, normalize_for_matching
from inboxpilot.services.usage_service import increment_qualified_leads

logger = get_logger("lead_service")

EMAIL_RE = re.compile(r"[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}", re.IGNORECASE)
PHONE_RE = re.compile(r"\+?\d[\d\s().-]{6,}\d")
MIN_PHONE_DIGITS = 8

# Explicit booking phrasing only, matched independently of the intent label.
BOOKING_KEYWORDS = ("book", "booking", "appointment", "schedule", "reserve", "cita", "agendar", "reservar", "programar")


@dataclass
class QualificationResult:
    qualified: bool
    intent: Intent
    booking_intent: bool
    reason: str
    email: Optional[str] = None
    phone: Optional[str] = None
    lead_id: Optional[uuid.UUID] = None
    customer_id: Optional[uuid.UUID] = None
    lead_created: bool = False


def extract_email(text: Optional[str]) -> Optional[str]:
    if not text:
        return None
    match = EMAIL_RE.search(text)
    return match.group(0).lower() if match else None


def extract_phone(text: Optional[str]) -> Optional[str]:
    """First phone-like run with at least eight digits, separators removed."""
    if not text:
        return None
    for match in PHONE_RE.finditer(text):
        raw = match.group(0)
        digits = re.sub(r"\D", "", raw)
        if len(digits) >= MIN_PHONE_DIGITS:
            return f"+{digits}" if raw.startswith("+") else digits
    return None


def has_booking_intent(text: Optional[str]) -> bool:
    normalized = normalize_for_matching(text or "")
    return any(keyword in normalized for keyword in BOOKING_KEYWORDS)


def build_reason(intent: Intent, email: Optional[str], phone: Optional[str], booking_intent: bool) -> str:
    parts = [f"intent={intent.value}"]
    if email:
        parts.append("contact=email")
    if phone:
        parts.append("contact=phone")
    if booking_intent:
        parts.append("explicit_booking=true")
    if not email and not phone:
        parts.append("contact=missing")
    return "; ".join(parts)


def upsert_lead(
    db: Session,
    *,
    business_id: str,
    conversation_id: str,
    customer_id: Optional[uuid.UUID],
    name: Optional[str],
    email: Optional[str],
    phone: Optional[str],
    source: str,
    reason: str,
) -> tuple[uuid.UUID, bool]:
    """Insert the lead or refresh the existing one. Returns (lead_id, created).

    ``created`` is true for exactly one caller per (business, conversation),
    which is what the qualified-leads counter relies on.
    """
    now = utcnow()
    insert_stmt = (
        dialect_insert(db, Lead)
        .values(
            id=uuid.uuid4(),
            business_id=business_id,
            conversation_id=conversation_id,
            customer_id=customer_id,
            name=name,
            email=email,
            phone=phone,
            source=source,
            stage="qualified",
            qualification_reason=reason,
            created_at=now,
            updated_at=now,
        )
        .on_conflict_do_nothing(index_elements=["business_id", "conversation_id"])
        .returning(Lead.id)
    )
    lead_id = db.execute(insert_stmt).scalar_one_or_none()
    if lead_id is not None:
        return lead_id, True

    update_stmt = (
        update(Lead)
        .where(Lead.business_id == business_id, Lead.conversation_id == conversation_id)
        .values(
            customer_id=func.coalesce(customer_id, Lead.customer_id),
            name=func.coalesce(Lead.name, name),
            email=func.coalesce(email, Lead.email),
            phone=func.coalesce(phone, Lead.phone),
            stage="qualified",
            qualification_reason=reason,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    db.execute(update_stmt)
    lead_id = db.execute(
        select(Lead.id).where(Lead.business_id == business_id, Lead.conversation_id == conversation_id)
    ).scalar_one()
    return lead_id, False


def qualify_lead(db: Session, message: NormalizedMessage, intent: Optional[Intent] = None) -> QualificationResult:
    """Decide whether the message makes the conversation a sales-ready lead.

    Qualified means a pricing or booking intent plus either a contact signal or
    explicit booking language. Qualified conversations get a Customer and an
    upserted Lead; a newly created Lead bumps the qualified_leads counter.
    """
    text = message.message_text
    intent = intent or classify_intent(text)
    email = extract_email(text)
    phone = extract_phone(text)
    if not phone and message.channel == Channel.WHATSAPP:
        phone = extract_phone(message.sender_handle)
    booking_intent = has_booking_intent(text)
    reason = build_reason(intent, email, phone, booking_intent)

    qualified = intent in SALES_INTENTS and (bool(email or phone) or booking_intent)
    result = QualificationResult(
        qualified=qualified,
        intent=intent,
        booking_intent=booking_intent,
        reason=reason,
        email=email,
        phone=phone,
    )
    if not qualified:
        return result

    try:
        customer = resolve_customer(
            db,
            message.business_id,
            full_name=message.sender_name,
            email=email,
            phone=phone,
        )
        lead_id, created = upsert_lead(
            db,
            business_id=message.business_id,
            conversation_id=message.conversation_key,
            customer_id=customer.id,
            name=message.sender_name,
            email=email,
            phone=phone,
            source=message.channel.value,
            reason=reason,
        )
        db.execute(
            update(ConversationThread)
            .where(
                ConversationThread.business_id == message.business_id,
                ConversationThread.channel == message.channel.value,
                ConversationThread.conversation_key == message.conversation_key,
            )
            .values(lead_id=lead_id)
            .execution_options(synchronize_session=False)
        )
        if created:
            increment_qualified_leads(db, message.business_id, at=message.timestamp)
    except SQLAlchemyError as exc:
        raise PersistenceError("Failed to persist qualified lead") from exc

    result.lead_id = lead_id
    result.customer_id = customer.id
    result.lead_created = created
    logger.info(
        "Lead qualified",
        extra={
            "context": {
                "business_id": message.business_id,
                "lead_id": str(lead_id),
                "created": created,
                "reason": reason,
            }
        },
    )
    return result

"""Copy a qualified lead's conversation into the CRM: customer, notes, booking."""

import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from inboxpilot.database import ensure_utc, utcnow
from inboxpilot.errors import PersistenceError
from inboxpilot.logging_config import get_logger
from inboxpilot.models import Booking, Lead, Message, Note
from inboxpilot.services.customer_service import resolve_customer
from inboxpilot.services.thread_service import conversation_history

logger = get_logger("crm_sync_service")

NOTE_ENTITY_CUSTOMER = "customer"
BOOKING_SOURCE_CHATBOT = "chatbot"
BOOKING_STATUS_PENDING = "pending"
DEFAULT_SERVICE_NAME = "TBD"


@dataclass
class CrmSyncResult:
    customer_id: uuid.UUID
    notes_created: int = 0
    booking_id: Optional[uuid.UUID] = None
    booking_created: bool = False


def format_note(message: Message) -> str:
    """``[timestamp] [channel] sender: text``; missing parts are left out."""
    parts = []
    if message.timestamp:
        parts.append(f"[{ensure_utc(message.timestamp).isoformat()}]")
    if message.channel:
        parts.append(f"[{message.channel}]")
    prefix = " ".join(parts)
    body = f"{message.sender}: {message.message_text}" if message.sender else message.message_text
    return f"{prefix} {body}" if prefix else body


def _existing_notes(db: Session, business_id: str, customer_id: uuid.UUID) -> set[str]:
    rows = (
        db.query(Note.message)
        .filter(
            Note.business_id == business_id,
            Note.entity_type == NOTE_ENTITY_CUSTOMER,
            Note.entity_id == customer_id,
        )
        .all()
    )
    return {row[0] for row in rows}


def _ensure_pending_booking(
    db: Session,
    business_id: str,
    customer_id: uuid.UUID,
    service_name: Optional[str],
) -> tuple[uuid.UUID, bool]:
    existing = (
        db.query(Booking)
        .filter(
            Booking.business_id == business_id,
            Booking.customer_id == customer_id,
            Booking.status == BOOKING_STATUS_PENDING,
            Booking.source == BOOKING_SOURCE_CHATBOT,
        )
        .first()
    )
    if existing:
        return existing.id, False

    booking = Booking(
        business_id=business_id,
        customer_id=customer_id,
        service_name=service_name or DEFAULT_SERVICE_NAME,
        status=BOOKING_STATUS_PENDING,
        source=BOOKING_SOURCE_CHATBOT,
        scheduled_at=None,
        created_at=utcnow(),
    )
    db.add(booking)
    db.flush()
    return booking.id, True


def sync_lead_to_crm(
    db: Session,
    lead_id: uuid.UUID,
    business_id: str,
    conversation_id: str,
    sender_name: Optional[str],
    sender_phone: Optional[str],
    booking_intent: bool = False,
    selected_service: Optional[str] = None,
) -> CrmSyncResult:
    """Idempotent: re-running only adds notes and bookings that are missing."""
    try:
        lead = db.query(Lead).filter(Lead.id == lead_id, Lead.business_id == business_id).first()
        email = lead.email if lead else None
        phone = (lead.phone if lead else None) or sender_phone
        name = (lead.name if lead else None) or sender_name

        customer = resolve_customer(
            db,
            business_id,
            full_name=name,
            email=email,
            phone=phone,
            tags=["lead"],
        )
        if lead and lead.customer_id is None:
            lead.customer_id = customer.id

        result = CrmSyncResult(customer_id=customer.id)

        seen = _existing_notes(db, business_id, customer.id)
        for message in conversation_history(db, business_id, conversation_id):
            note_text = format_note(message)
            if note_text in seen:
                continue
            seen.add(note_text)
            db.add(
                Note(
                    business_id=business_id,
                    entity_type=NOTE_ENTITY_CUSTOMER,
                    entity_id=customer.id,
                    message=note_text,
                    created_at=utcnow(),
                )
            )
            result.notes_created += 1

        if booking_intent:
            result.booking_id, result.booking_created = _ensure_pending_booking(
                db, business_id, customer.id, selected_service
            )
        db.flush()
    except SQLAlchemyError as exc:
        raise PersistenceError("Failed to sync lead to CRM") from exc

    logger.info(
        "Lead synced to CRM",
        extra={
            "context": {
                "business_id": business_id,
                "lead_id": str(lead_id),
                "customer_id": str(customer.id),
                "notes_created": result.notes_created,
                "booking_created": result.booking_created,
            }
        },
    )
    return result

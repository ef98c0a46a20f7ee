from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from inboxpilot.database import utcnow
from inboxpilot.logging_config import get_logger
from inboxpilot.models import Customer

logger = get_logger("customer_service")


def find_customer(
    db: Session,
    business_id: str,
    email: Optional[str] = None,
    phone: Optional[str] = None,
) -> Optional[Customer]:
    """Email match wins over phone match. Oldest record wins within each."""
    if email:
        customer = (
            db.query(Customer)
            .filter(Customer.business_id == business_id, func.lower(Customer.email) == email.lower())
            .order_by(Customer.created_at.asc())
            .first()
        )
        if customer:
            return customer
    if phone:
        return (
            db.query(Customer)
            .filter(Customer.business_id == business_id, Customer.phone == phone)
            .order_by(Customer.created_at.asc())
            .first()
        )
    return None


def resolve_customer(
    db: Session,
    business_id: str,
    *,
    full_name: Optional[str] = None,
    email: Optional[str] = None,
    phone: Optional[str] = None,
    tags: Optional[list[str]] = None,
) -> Customer:
    """Find the tenant's customer for this contact or create one.

    A matched customer gets missing email/phone filled in, so a later lookup by
    either signal lands on the same row.
    """
    customer = find_customer(db, business_id, email=email, phone=phone)
    if customer:
        if email and not customer.email:
            customer.email = email
        if phone and not customer.phone:
            customer.phone = phone
        db.flush()
        return customer

    customer = Customer(
        business_id=business_id,
        full_name=full_name or "Unknown",
        email=email,
        phone=phone,
        tags=list(tags or []),
        created_at=utcnow(),
    )
    db.add(customer)
    db.flush()
    logger.info("Customer created", extra={"context": {"business_id": business_id, "customer_id": str(customer.id)}})
    return customer

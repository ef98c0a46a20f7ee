import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Text, Uuid

from inboxpilot.database import Base


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    business_id = Column(Text, nullable=False)
    customer_id = Column(Uuid, ForeignKey("customers.id"), nullable=False, index=True)
    service_name = Column(Text, nullable=False)
    status = Column(Text, nullable=False, default="pending")  # pending, confirmed, cancelled
    source = Column(Text, nullable=False)  # chatbot, manual
    scheduled_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), nullable=False)

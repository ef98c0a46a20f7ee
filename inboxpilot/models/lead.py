import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Text, UniqueConstraint, Uuid

from inboxpilot.database import Base


class Lead(Base):
    __tablename__ = "leads"
    __table_args__ = (UniqueConstraint("business_id", "conversation_id", name="uq_lead_conversation"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    business_id = Column(Text, nullable=False)
    conversation_id = Column(Text, nullable=False)
    customer_id = Column(Uuid, ForeignKey("customers.id"))
    name = Column(Text)
    email = Column(Text)
    phone = Column(Text)
    source = Column(Text)  # channel the lead arrived on
    stage = Column(Text, nullable=False, default="qualified")
    qualification_reason = Column(Text)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

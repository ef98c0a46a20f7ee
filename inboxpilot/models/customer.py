import uuid

from sqlalchemy import Column, DateTime, Index, Text, Uuid

from inboxpilot.database import Base, JSONType


class Customer(Base):
    __tablename__ = "customers"
    __table_args__ = (
        Index("ix_customers_email", "business_id", "email"),
        Index("ix_customers_phone", "business_id", "phone"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    business_id = Column(Text, nullable=False)
    full_name = Column(Text, nullable=False)
    email = Column(Text)
    phone = Column(Text)
    tags = Column(JSONType, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), nullable=False)

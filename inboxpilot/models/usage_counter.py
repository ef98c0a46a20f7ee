import uuid

from sqlalchemy import Column, DateTime, Integer, Text, UniqueConstraint, Uuid

from inboxpilot.database import Base


class UsageCounter(Base):
    __tablename__ = "usage_counters"
    __table_args__ = (UniqueConstraint("business_id", "metric", "period", name="uq_usage_counter"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    business_id = Column(Text, nullable=False)
    metric = Column(Text, nullable=False)  # conversations_24h, qualified_leads
    period = Column(Text, nullable=False)  # YYYY-MM, UTC
    value = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), nullable=False)

import uuid

from sqlalchemy import Column, DateTime, Text, UniqueConstraint, Uuid

from inboxpilot.database import Base


class ProcessedEvent(Base):
    __tablename__ = "processed_events"
    __table_args__ = (
        UniqueConstraint("business_id", "channel", "provider_message_id", name="uq_processed_event"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    business_id = Column(Text, nullable=False)
    channel = Column(Text, nullable=False)
    provider_message_id = Column(Text, nullable=False)
    received_at = Column(DateTime(timezone=True), nullable=False)

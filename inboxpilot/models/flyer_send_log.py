import uuid

from sqlalchemy import Column, DateTime, Index, Text, Uuid

from inboxpilot.database import Base


class FlyerSendLog(Base):
    __tablename__ = "flyer_send_log"
    __table_args__ = (Index("ix_flyer_send_log_conversation", "business_id", "conversation_id", "sent_at"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    business_id = Column(Text, nullable=False)
    conversation_id = Column(Text, nullable=False)
    media_asset_id = Column(Uuid, nullable=False)
    sent_at = Column(DateTime(timezone=True), nullable=False)

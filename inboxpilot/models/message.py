import uuid

from sqlalchemy import Column, DateTime, Index, Text, Uuid

from inboxpilot.database import Base


class Message(Base):
    """Flat, append-only message log used for cross-thread queries."""

    __tablename__ = "messages"
    __table_args__ = (Index("ix_messages_conversation", "business_id", "conversation_id", "timestamp"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    business_id = Column(Text, nullable=False)
    conversation_id = Column(Text, nullable=False)
    channel = Column(Text, nullable=False)
    direction = Column(Text, nullable=False)
    sender = Column(Text)
    message_text = Column(Text, nullable=False)
    message_type = Column(Text, nullable=False, default="text")
    media_asset_id = Column(Uuid)
    file_url = Column(Text)
    timestamp = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)

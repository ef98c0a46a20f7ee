import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Index, Text, Uuid
from sqlalchemy.orm import relationship

from inboxpilot.database import Base, JSONType


class ThreadMessage(Base):
    __tablename__ = "thread_messages"
    __table_args__ = (Index("ix_thread_messages_provider_id", "business_id", "provider_message_id"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    thread_id = Column(Uuid, ForeignKey("conversation_threads.id"), nullable=False, index=True)
    business_id = Column(Text, nullable=False)
    channel = Column(Text, nullable=False)
    direction = Column(Text, nullable=False)  # inbound, outbound
    sender_name = Column(Text)
    sender_handle = Column(Text)
    message_text = Column(Text, nullable=False)
    message_type = Column(Text, nullable=False, default="text")  # text, image
    media_asset_id = Column(Uuid)
    file_url = Column(Text)
    provider_message_id = Column(Text)
    message_metadata = Column("metadata", JSONType, nullable=False, default=dict)
    sent_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)

    thread = relationship("ConversationThread")

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Text, UniqueConstraint, Uuid

from inboxpilot.database import Base, JSONType


class ConversationThread(Base):
    __tablename__ = "conversation_threads"
    __table_args__ = (UniqueConstraint("business_id", "channel", "conversation_key", name="uq_thread_key"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    business_id = Column(Text, nullable=False)
    channel = Column(Text, nullable=False)  # whatsapp, instagram
    conversation_key = Column(Text, nullable=False)
    contact_name = Column(Text)
    contact_handle = Column(Text)
    status = Column(Text, nullable=False, default="open")
    unread_count = Column(Integer, nullable=False, default=0)
    last_message_text = Column(Text)
    last_message_direction = Column(Text)  # inbound, outbound
    last_message_at = Column(DateTime(timezone=True))
    last_intent = Column(Text)
    last_usage_window_at = Column(DateTime(timezone=True))
    lead_id = Column(Uuid, ForeignKey("leads.id"))
    thread_metadata = Column("metadata", JSONType, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

import uuid

from sqlalchemy import Column, DateTime, Index, Text, Uuid

from inboxpilot.database import Base


class Note(Base):
    __tablename__ = "notes"
    __table_args__ = (Index("ix_notes_entity", "business_id", "entity_type", "entity_id"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    business_id = Column(Text, nullable=False)
    entity_type = Column(Text, nullable=False)  # customer
    entity_id = Column(Uuid, nullable=False)
    message = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)

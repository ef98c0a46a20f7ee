from sqlalchemy import Boolean, Column, DateTime, Integer, Text

from inboxpilot.database import Base, JSONType


class Business(Base):
    __tablename__ = "businesses"

    id = Column(Text, primary_key=True)
    name = Column(Text, nullable=False)
    language_preference = Column(Text)  # en, es
    office_hours = Column(Text)
    booking_rules = Column(JSONType, nullable=False, default=dict)
    chatbot_enabled = Column(Boolean, nullable=False, default=True)
    ai_reply_enabled = Column(Boolean, nullable=False, default=False)
    flyer_cooldown_hours = Column(Integer, nullable=False, default=24)
    created_at = Column(DateTime(timezone=True))
    updated_at = Column(DateTime(timezone=True))

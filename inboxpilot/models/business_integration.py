import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Text, Uuid

from inboxpilot.database import Base


class BusinessIntegration(Base):
    __tablename__ = "business_integrations"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    business_id = Column(Text, ForeignKey("businesses.id"), nullable=False, unique=True)
    whatsapp_phone_number_id = Column(Text)
    whatsapp_access_token = Column(Text)
    instagram_business_id = Column(Text)
    instagram_access_token = Column(Text)
    webhook_verify_token = Column(Text)
    updated_at = Column(DateTime(timezone=True))

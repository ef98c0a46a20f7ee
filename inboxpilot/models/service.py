import uuid

from sqlalchemy import Boolean, Column, ForeignKey, Integer, Numeric, Text, Uuid

from inboxpilot.database import Base


class Service(Base):
    __tablename__ = "services"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    business_id = Column(Text, ForeignKey("businesses.id"), nullable=False, index=True)
    name = Column(Text, nullable=False)
    description = Column(Text)
    base_price = Column(Numeric(10, 2))
    duration_minutes = Column(Integer)
    is_active = Column(Boolean, nullable=False, default=True)

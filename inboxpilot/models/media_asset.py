import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Text, Uuid

from inboxpilot.database import Base


class MediaAsset(Base):
    __tablename__ = "media_assets"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    business_id = Column(Text, ForeignKey("businesses.id"), nullable=False, index=True)
    asset_type = Column(Text, nullable=False)  # services_flyer
    file_url = Column(Text, nullable=False)
    caption = Column(Text)
    is_default = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True))

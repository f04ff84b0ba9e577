from sqlalchemy import Column, Integer, String, DateTime, Text, Boolean, ForeignKey
from cyclebees.core.database import Base
from cyclebees.core.timeutils import utcnow


class ContactSetting(Base):
    __tablename__ = "contact_settings"

    id = Column(Integer, primary_key=True, index=True)
    type = Column(String(10), nullable=False)  # phone / email / link
    value = Column(String(500), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, onupdate=utcnow)


class PromotionalCard(Base):
    __tablename__ = "promotional_cards"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    image_url = Column(String(500))
    external_link = Column(String(500))
    display_order = Column(Integer, default=0, nullable=False)
    starts_at = Column(DateTime, nullable=True)
    ends_at = Column(DateTime, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, onupdate=utcnow)


class RequestNotification(Base):
    __tablename__ = "request_notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    request_type = Column(String(10), nullable=False)
    request_id = Column(Integer, nullable=False)
    status = Column(String(32), nullable=False)
    message = Column(Text, nullable=False)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)

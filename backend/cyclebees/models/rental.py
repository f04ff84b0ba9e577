from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Boolean, Numeric, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from cyclebees.core.database import Base
from cyclebees.core.timeutils import utcnow
from cyclebees.models.request_status import RequestStatusEnum, PaymentMethodEnum, DurationTypeEnum
from cyclebees.models.repair import _enum


class Bicycle(Base):
    __tablename__ = "bicycles"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    model = Column(String(255))
    description = Column(Text)
    special_instructions = Column(Text)
    daily_rate = Column(Numeric(10, 2), nullable=False)
    weekly_rate = Column(Numeric(10, 2), nullable=False)
    delivery_charge = Column(Numeric(10, 2), nullable=False, default=0)
    specifications = Column(Text)
    is_available = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, onupdate=utcnow)

    photos = relationship(
        "BicyclePhoto",
        back_populates="bicycle",
        cascade="all, delete-orphan",
        order_by="BicyclePhoto.display_order",
    )


class BicyclePhoto(Base):
    __tablename__ = "bicycle_photos"

    id = Column(Integer, primary_key=True, index=True)
    bicycle_id = Column(Integer, ForeignKey("bicycles.id"), nullable=False, index=True)
    photo_url = Column(String(500), nullable=False)
    display_order = Column(Integer, default=0, nullable=False)

    bicycle = relationship("Bicycle", back_populates="photos")


class RentalRequest(Base):
    __tablename__ = "rental_requests"
    __table_args__ = (
        UniqueConstraint("user_id", "draft_token", name="uq_rental_requests_user_draft"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    bicycle_id = Column(Integer, ForeignKey("bicycles.id"), nullable=False, index=True)
    contact_number = Column(String(15), nullable=False)
    alternate_number = Column(String(15))
    email = Column(String(255))
    delivery_address = Column(Text, nullable=False)
    special_instructions = Column(Text)
    duration_type = Column(_enum(DurationTypeEnum), nullable=False)
    duration_count = Column(Integer, nullable=False)
    payment_method = Column(_enum(PaymentMethodEnum), nullable=False)
    total_amount = Column(Numeric(10, 2), nullable=False)
    coupon_id = Column(Integer, ForeignKey("coupons.id"), nullable=True)
    discount_amount = Column(Numeric(10, 2), nullable=False, default=0)
    net_amount = Column(Numeric(10, 2), nullable=False)
    status = Column(_enum(RequestStatusEnum), nullable=False, default=RequestStatusEnum.PENDING, index=True)
    rejection_note = Column(Text)
    draft_token = Column(String(64), nullable=True)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, onupdate=utcnow)

    user = relationship("User", back_populates="rental_requests")
    bicycle = relationship("Bicycle")
    coupon = relationship("Coupon")

    @property
    def bicycle_name(self):
        return self.bicycle.name if self.bicycle else None

    @property
    def coupon_code(self):
        return self.coupon.code if self.coupon else None

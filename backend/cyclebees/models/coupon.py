from sqlalchemy import Column, Integer, String, DateTime, Boolean, Numeric, Text, JSON, ForeignKey, UniqueConstraint, Enum as SQLEnum
import enum
from cyclebees.core.database import Base
from cyclebees.core.timeutils import utcnow


class DiscountTypeEnum(str, enum.Enum):
    PERCENTAGE = "percentage"  # value is 0-100
    FIXED = "fixed"            # value is an amount in INR


class CouponItemEnum(str, enum.Enum):
    REPAIR_SERVICES = "repair_services"
    RENTAL_SERVICES = "rental_services"
    SERVICE_MECHANIC_CHARGE = "service_mechanic_charge"
    DELIVERY_CHARGE = "delivery_charge"


class Coupon(Base):
    __tablename__ = "coupons"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(64), unique=True, nullable=False, index=True)  # e.g. FIRST50, WELCOME10
    description = Column(Text)
    discount_type = Column(
        SQLEnum(DiscountTypeEnum, values_callable=lambda x: [e.value for e in x], native_enum=False),
        nullable=False,
    )
    discount_value = Column(Numeric(10, 2), nullable=False)
    min_amount = Column(Numeric(10, 2), nullable=False, default=0)
    max_discount = Column(Numeric(10, 2), nullable=True)  # cap for percentage coupons
    applicable_items = Column(JSON, nullable=False, default=list)
    usage_limit = Column(Integer, nullable=True)  # None = unlimited
    usage_count = Column(Integer, default=0, nullable=False)
    expires_at = Column(DateTime, nullable=True)  # None = no expiry
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, onupdate=utcnow)


class CouponUsage(Base):
    """One row per request that consumed a coupon."""

    __tablename__ = "coupon_usage"
    __table_args__ = (
        UniqueConstraint("coupon_id", "request_type", "request_id", name="uq_coupon_usage_request"),
    )

    id = Column(Integer, primary_key=True, index=True)
    coupon_id = Column(Integer, ForeignKey("coupons.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    request_type = Column(String(10), nullable=False)
    request_id = Column(Integer, nullable=False)
    discount_amount = Column(Numeric(10, 2), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

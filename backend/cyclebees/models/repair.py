from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Boolean, Numeric, Text, Enum as SQLEnum, UniqueConstraint
from sqlalchemy.orm import relationship
from cyclebees.core.database import Base
from cyclebees.core.timeutils import utcnow
from cyclebees.models.request_status import RequestStatusEnum, PaymentMethodEnum


def _enum(enum_cls):
    return SQLEnum(enum_cls, values_callable=lambda x: [e.value for e in x], native_enum=False)


class RepairService(Base):
    __tablename__ = "repair_services"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    special_instructions = Column(Text)
    price = Column(Numeric(10, 2), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, onupdate=utcnow)


class TimeSlot(Base):
    __tablename__ = "time_slots"

    id = Column(Integer, primary_key=True, index=True)
    start_time = Column(String(5), nullable=False)  # HH:MM
    end_time = Column(String(5), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class MechanicCharge(Base):
    __tablename__ = "service_mechanic_charge"

    id = Column(Integer, primary_key=True, index=True)
    amount = Column(Numeric(10, 2), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class RepairRequest(Base):
    __tablename__ = "repair_requests"
    __table_args__ = (
        UniqueConstraint("user_id", "draft_token", name="uq_repair_requests_user_draft"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    contact_number = Column(String(15), nullable=False)
    alternate_number = Column(String(15))
    email = Column(String(255), nullable=False)
    address = Column(Text, nullable=False)
    notes = Column(Text)
    preferred_date = Column(DateTime, nullable=False)
    time_slot_id = Column(Integer, ForeignKey("time_slots.id"), nullable=False)
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

    user = relationship("User", back_populates="repair_requests")
    time_slot = relationship("TimeSlot")
    coupon = relationship("Coupon")
    services = relationship("RepairRequestService", back_populates="repair_request", cascade="all, delete-orphan")
    files = relationship(
        "RepairRequestFile",
        back_populates="repair_request",
        cascade="all, delete-orphan",
        order_by="RepairRequestFile.display_order",
    )

    @property
    def start_time(self):
        return self.time_slot.start_time if self.time_slot else None

    @property
    def end_time(self):
        return self.time_slot.end_time if self.time_slot else None

    @property
    def coupon_code(self):
        return self.coupon.code if self.coupon else None


class RepairRequestService(Base):
    __tablename__ = "repair_request_services"

    id = Column(Integer, primary_key=True, index=True)
    repair_request_id = Column(Integer, ForeignKey("repair_requests.id"), nullable=False, index=True)
    repair_service_id = Column(Integer, ForeignKey("repair_services.id"), nullable=False, index=True)
    price = Column(Numeric(10, 2), nullable=False)
    discount_amount = Column(Numeric(10, 2), nullable=False, default=0)

    repair_request = relationship("RepairRequest", back_populates="services")
    service = relationship("RepairService")

    @property
    def name(self):
        return self.service.name if self.service else None


class RepairRequestFile(Base):
    __tablename__ = "repair_request_files"

    id = Column(Integer, primary_key=True, index=True)
    repair_request_id = Column(Integer, ForeignKey("repair_requests.id"), nullable=False, index=True)
    file_url = Column(String(500), nullable=False)
    file_type = Column(String(10), nullable=False)  # image / video
    display_order = Column(Integer, default=0, nullable=False)

    repair_request = relationship("RepairRequest", back_populates="files")

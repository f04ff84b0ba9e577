from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import EmailStr, Field, field_validator

from cyclebees.models.request_status import PaymentMethodEnum, RequestStatusEnum
from cyclebees.schemas.common import CamelModel


# ── Catalogue ──────────────────────────────────────────────────

class RepairServiceCreate(CamelModel):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    special_instructions: Optional[str] = None
    price: Decimal = Field(ge=0)
    is_active: bool = True


class RepairServiceUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    special_instructions: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, ge=0)
    is_active: Optional[bool] = None


class RepairServiceResponse(CamelModel):
    id: int
    name: str
    description: Optional[str] = None
    special_instructions: Optional[str] = None
    price: float
    is_active: bool


class TimeSlotCreate(CamelModel):
    start_time: str = Field(pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    end_time: str = Field(pattern=r"^([01]\d|2[0-3]):[0-5]\d$")


class TimeSlotResponse(CamelModel):
    id: int
    start_time: str
    end_time: str
    is_active: bool


class MechanicChargeUpdate(CamelModel):
    amount: Decimal = Field(ge=0)


# ── Requests ───────────────────────────────────────────────────

class RepairRequestCreate(CamelModel):
    services: List[int] = Field(min_length=1)
    contact_number: str = Field(pattern=r"^[6-9]\d{9}$")
    alternate_number: Optional[str] = Field(default=None, pattern=r"^[6-9]\d{9}$")
    email: EmailStr
    address: str = Field(min_length=5)
    notes: Optional[str] = None
    preferred_date: date
    time_slot_id: int
    payment_method: PaymentMethodEnum
    total_amount: Optional[Decimal] = Field(default=None, ge=0)
    coupon_code: Optional[str] = None
    draft_token: Optional[str] = Field(default=None, max_length=64)

    @field_validator("alternate_number", "coupon_code", "draft_token", "notes", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("preferred_date")
    @classmethod
    def not_in_past(cls, v: date) -> date:
        if v < date.today():
            raise ValueError("Preferred date cannot be in the past")
        return v


class RepairLineResponse(CamelModel):
    id: int
    repair_service_id: int
    name: Optional[str] = None
    price: float
    discount_amount: float


class RepairFileResponse(CamelModel):
    id: int
    file_url: str
    file_type: str
    display_order: int


class RepairRequestResponse(CamelModel):
    id: int
    user_id: int
    contact_number: str
    alternate_number: Optional[str] = None
    email: str
    address: str
    notes: Optional[str] = None
    preferred_date: datetime
    time_slot_id: int
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    payment_method: PaymentMethodEnum
    total_amount: float
    coupon_id: Optional[int] = None
    coupon_code: Optional[str] = None
    discount_amount: float
    net_amount: float
    status: RequestStatusEnum
    rejection_note: Optional[str] = None
    expires_at: datetime
    created_at: datetime
    updated_at: Optional[datetime] = None


class RepairRequestDetail(RepairRequestResponse):
    services: List[RepairLineResponse] = []
    files: List[RepairFileResponse] = []


class StatusUpdate(CamelModel):
    status: RequestStatusEnum
    rejection_note: Optional[str] = None

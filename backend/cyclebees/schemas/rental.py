from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import EmailStr, Field, field_validator, model_validator

from cyclebees.models.request_status import DurationTypeEnum, PaymentMethodEnum, RequestStatusEnum
from cyclebees.schemas.common import CamelModel


class BicycleCreate(CamelModel):
    name: str = Field(min_length=1, max_length=255)
    model: Optional[str] = None
    description: Optional[str] = None
    special_instructions: Optional[str] = None
    daily_rate: Decimal = Field(gt=0)
    weekly_rate: Decimal = Field(gt=0)
    delivery_charge: Decimal = Field(default=Decimal("0"), ge=0)
    specifications: Optional[str] = None
    is_available: bool = True


class BicycleUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    model: Optional[str] = None
    description: Optional[str] = None
    special_instructions: Optional[str] = None
    daily_rate: Optional[Decimal] = Field(default=None, gt=0)
    weekly_rate: Optional[Decimal] = Field(default=None, gt=0)
    delivery_charge: Optional[Decimal] = Field(default=None, ge=0)
    specifications: Optional[str] = None
    is_available: Optional[bool] = None


class BicyclePhotoResponse(CamelModel):
    id: int
    photo_url: str
    display_order: int


class BicycleResponse(CamelModel):
    id: int
    name: str
    model: Optional[str] = None
    description: Optional[str] = None
    special_instructions: Optional[str] = None
    daily_rate: float
    weekly_rate: float
    delivery_charge: float
    specifications: Optional[str] = None
    is_available: bool
    photos: List[BicyclePhotoResponse] = []


class RentalRequestCreate(CamelModel):
    bicycle_id: int
    contact_number: str = Field(pattern=r"^[6-9]\d{9}$")
    alternate_number: Optional[str] = Field(default=None, pattern=r"^[6-9]\d{9}$")
    email: Optional[EmailStr] = None
    delivery_address: str = Field(min_length=5)
    special_instructions: Optional[str] = None
    duration_type: DurationTypeEnum
    duration_count: int = Field(ge=1, le=365)
    payment_method: PaymentMethodEnum
    total_amount: Optional[Decimal] = Field(default=None, ge=0)
    coupon_code: Optional[str] = None
    draft_token: Optional[str] = Field(default=None, max_length=64)

    @field_validator("alternate_number", "email", "coupon_code", "draft_token", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @model_validator(mode="after")
    def weekly_limit(self):
        if self.duration_type == DurationTypeEnum.WEEKLY and self.duration_count > 52:
            raise ValueError("Weekly rentals are limited to 52 weeks")
        return self


class RentalRequestResponse(CamelModel):
    id: int
    user_id: int
    bicycle_id: int
    bicycle_name: Optional[str] = None
    contact_number: str
    alternate_number: Optional[str] = None
    email: Optional[str] = None
    delivery_address: str
    special_instructions: Optional[str] = None
    duration_type: DurationTypeEnum
    duration_count: int
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


class RentalRequestDetail(RentalRequestResponse):
    bicycle: Optional[BicycleResponse] = None

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import Field, field_validator, model_validator

from cyclebees.core.timeutils import to_naive_utc
from cyclebees.models.coupon import CouponItemEnum, DiscountTypeEnum
from cyclebees.models.request_status import RequestTypeEnum
from cyclebees.schemas.common import CamelModel


class CouponApplyRequest(CamelModel):
    code: str
    request_type: RequestTypeEnum
    items: List[str] = Field(min_length=1)
    total_amount: Decimal = Field(ge=0)

    @field_validator("code")
    @classmethod
    def code_trim_upper(cls, v: str) -> str:
        return v.strip().upper() if v else ""


class CouponApplyResponse(CamelModel):
    code: str
    discount: float
    discount_type: str
    net_amount: float


class CouponBase(CamelModel):
    description: Optional[str] = None
    discount_type: DiscountTypeEnum
    discount_value: Decimal = Field(gt=0)
    min_amount: Decimal = Field(default=Decimal("0"), ge=0)
    max_discount: Optional[Decimal] = Field(default=None, gt=0)
    applicable_items: List[CouponItemEnum] = Field(min_length=1)
    usage_limit: Optional[int] = Field(default=None, ge=1)
    expires_at: Optional[datetime] = None
    is_active: bool = True

    @field_validator("expires_at")
    @classmethod
    def expiry_as_naive_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v) if v is not None else None

    @model_validator(mode="after")
    def percentage_range(self):
        if self.discount_type == DiscountTypeEnum.PERCENTAGE and self.discount_value > 100:
            raise ValueError("Percentage discount cannot exceed 100")
        return self


class CouponCreate(CouponBase):
    code: str = Field(min_length=3, max_length=64)

    @field_validator("code")
    @classmethod
    def code_trim_upper(cls, v: str) -> str:
        return v.strip().upper()


class CouponUpdate(CamelModel):
    description: Optional[str] = None
    discount_value: Optional[Decimal] = Field(default=None, gt=0)
    min_amount: Optional[Decimal] = Field(default=None, ge=0)
    max_discount: Optional[Decimal] = Field(default=None, gt=0)
    applicable_items: Optional[List[CouponItemEnum]] = Field(default=None, min_length=1)
    usage_limit: Optional[int] = Field(default=None, ge=1)
    expires_at: Optional[datetime] = None
    is_active: Optional[bool] = None

    @field_validator("expires_at")
    @classmethod
    def expiry_as_naive_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v) if v is not None else None


class CouponResponse(CamelModel):
    id: int
    code: str
    description: Optional[str] = None
    discount_type: DiscountTypeEnum
    discount_value: float
    min_amount: float
    max_discount: Optional[float] = None
    applicable_items: List[str]
    usage_limit: Optional[int] = None
    usage_count: int
    expires_at: Optional[datetime] = None
    is_active: bool
    created_at: datetime

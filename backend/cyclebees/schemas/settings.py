import re
from datetime import datetime
from typing import Literal, Optional

from pydantic import Field, field_validator, model_validator

from cyclebees.schemas.common import CamelModel

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PHONE_RE = re.compile(r"^\+?\d[\d\s-]{8,14}\d$")


class ContactSettingUpdate(CamelModel):
    type: Literal["phone", "email", "link"]
    value: str = Field(min_length=1, max_length=500)

    @model_validator(mode="after")
    def value_matches_type(self):
        value = self.value.strip()
        if self.type == "phone" and not PHONE_RE.match(value):
            raise ValueError("Enter a valid phone number")
        if self.type == "email" and not EMAIL_RE.match(value):
            raise ValueError("Enter a valid email address")
        if self.type == "link" and not value.startswith(("http://", "https://")):
            raise ValueError("Link must start with http:// or https://")
        self.value = value
        return self


class ContactSettingResponse(CamelModel):
    id: int
    type: str
    value: str
    is_active: bool
    updated_at: Optional[datetime] = None


class PromotionalCardFields(CamelModel):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    external_link: Optional[str] = None
    display_order: int = 0
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    is_active: bool = True

    @field_validator("external_link")
    @classmethod
    def link_shape(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        v = v.strip()
        if not v.startswith(("/", "http://", "https://")):
            raise ValueError("Link must be an app route starting with / or an http(s) URL")
        return v

    @model_validator(mode="after")
    def window_order(self):
        if self.starts_at and self.ends_at and self.ends_at <= self.starts_at:
            raise ValueError("End time must be after start time")
        return self


class PromotionalCardResponse(CamelModel):
    id: int
    title: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    external_link: Optional[str] = None
    display_order: int
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    is_active: bool
    created_at: datetime


class NotificationResponse(CamelModel):
    id: int
    request_type: str
    request_id: int
    status: str
    message: str
    is_read: bool
    created_at: datetime

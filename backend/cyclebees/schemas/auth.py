from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field, field_validator

from cyclebees.schemas.common import CamelModel


class SendOtpRequest(CamelModel):
    phone: str


class VerifyOtpRequest(CamelModel):
    phone: str
    otp: str


class RegisterRequest(CamelModel):
    phone: str
    full_name: str = Field(min_length=2, max_length=255)
    email: EmailStr
    age: int = Field(ge=1, le=120)
    pincode: str = Field(pattern=r"^\d{6}$")
    address: str = Field(min_length=10)
    registration_token: Optional[str] = None
    otp: Optional[str] = None

    @field_validator("full_name", "address")
    @classmethod
    def strip(cls, v: str) -> str:
        return v.strip()


class ProfileUpdate(CamelModel):
    full_name: Optional[str] = Field(default=None, min_length=2, max_length=255)
    email: Optional[EmailStr] = None
    age: Optional[int] = Field(default=None, ge=1, le=120)
    pincode: Optional[str] = Field(default=None, pattern=r"^\d{6}$")
    address: Optional[str] = Field(default=None, min_length=10)


class AdminLoginRequest(CamelModel):
    username: str
    password: str


class UserResponse(CamelModel):
    id: int
    phone: str
    full_name: str
    email: str
    age: Optional[int] = None
    pincode: Optional[str] = None
    address: Optional[str] = None
    profile_photo: Optional[str] = None
    created_at: datetime


class AdminResponse(CamelModel):
    id: int
    username: str

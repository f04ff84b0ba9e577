"""
OTP login for customers, credential login for admins.

Both issue the same bearer JWT; the ``role`` claim tells them apart.
"""
from typing import Any, Optional

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from cyclebees.core.database import get_db
from cyclebees.core.exceptions import Forbidden, Unauthorized, ValidationError
from cyclebees.core.logging_config import get_logger
from cyclebees.core.security import (
    REGISTRATION_TOKEN_TYPE,
    create_access_token,
    create_registration_token,
    decode_access_token,
    decode_token,
    verify_password,
)
from cyclebees.models.user import Admin, User
from cyclebees.schemas.auth import (
    AdminLoginRequest,
    AdminResponse,
    ProfileUpdate,
    RegisterRequest,
    SendOtpRequest,
    UserResponse,
    VerifyOtpRequest,
)
from cyclebees.schemas.common import dump, envelope
from cyclebees.services import otp_service, upload_service

logger = get_logger("auth")

router = APIRouter()
bearer_scheme = HTTPBearer(auto_error=False)

USER_ROLE = "user"
ADMIN_ROLE = "admin"


def get_token_payload(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> dict:
    if credentials is None or not credentials.credentials:
        raise Unauthorized("Access token required")
    payload = decode_access_token(credentials.credentials)
    if payload is None or payload.get("sub") is None:
        logger.warning("Rejected invalid or expired token")
        raise Unauthorized("Invalid or expired token")
    return payload


def get_current_role(payload: dict = Depends(get_token_payload)) -> str:
    return payload.get("role")


def get_current_user(
    payload: dict = Depends(get_token_payload),
    db: Session = Depends(get_db),
) -> Any:
    """Returns the current User. Annotated as Any so FastAPI does not treat the ORM class as a response type."""
    if payload.get("role") != USER_ROLE:
        raise Forbidden("User access required")
    user = db.query(User).filter(User.id == int(payload["sub"])).first()
    if user is None:
        logger.warning("get_current_user: user %s not found", payload["sub"])
        raise Unauthorized("User not found")
    return user


def get_current_admin(
    payload: dict = Depends(get_token_payload),
    db: Session = Depends(get_db),
) -> Any:
    if payload.get("role") != ADMIN_ROLE:
        raise Forbidden("Admin access required")
    admin = db.query(Admin).filter(Admin.id == int(payload["sub"])).first()
    if admin is None:
        raise Unauthorized("Admin not found")
    return admin


def _user_token(user: User) -> str:
    return create_access_token({"sub": str(user.id), "role": USER_ROLE, "phone": user.phone})


@router.post("/send-otp")
async def send_otp(body: SendOtpRequest, db: Session = Depends(get_db)):
    record = otp_service.issue_otp(db, body.phone)
    return envelope(
        data={"phone": record.phone, "expiresAt": record.expires_at.isoformat()},
        message="OTP sent successfully",
    )


@router.post("/verify-otp")
async def verify_otp(body: VerifyOtpRequest, db: Session = Depends(get_db)):
    phone = otp_service.verify_otp(db, body.phone, body.otp)
    user = db.query(User).filter(User.phone == phone).first()
    if user is None:
        logger.info("OTP verified for unregistered phone", extra={"phone": phone})
        return envelope(
            data={"isNewUser": True, "phone": phone, "registrationToken": create_registration_token(phone)},
            message="OTP verified. Please complete registration",
        )
    logger.info("User %s logged in", user.id)
    return envelope(
        data={"isNewUser": False, "token": _user_token(user), "user": dump(UserResponse.model_validate(user))},
        message="Login successful",
    )


@router.post("/register", status_code=201)
async def register(body: RegisterRequest, db: Session = Depends(get_db)):
    phone = otp_service.normalize_phone(body.phone)
    if body.registration_token:
        claims = decode_token(body.registration_token, REGISTRATION_TOKEN_TYPE)
        if claims is None or claims.get("sub") != phone:
            raise Unauthorized("Registration token is invalid or expired")
    elif body.otp:
        otp_service.verify_otp(db, phone, body.otp)
    else:
        raise ValidationError(
            "Phone verification required",
            errors=[{"field": "registrationToken", "message": "Verify your phone number first"}],
        )

    if db.query(User).filter(User.phone == phone).first():
        raise ValidationError(
            "User already exists",
            errors=[{"field": "phone", "message": "This phone number is already registered"}],
        )

    user = User(
        phone=phone,
        full_name=body.full_name,
        email=str(body.email),
        age=body.age,
        pincode=body.pincode,
        address=body.address,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Registered user %s", user.id)
    return envelope(
        data={"token": _user_token(user), "user": dump(UserResponse.model_validate(user))},
        message="Registration successful",
    )


@router.post("/admin/login")
async def admin_login(body: AdminLoginRequest, db: Session = Depends(get_db)):
    username = body.username.strip()
    admin = db.query(Admin).filter(Admin.username == username).first()
    if admin is None or not verify_password(body.password, admin.password_hash):
        logger.warning("Admin login failed for username=%s", username)
        raise Unauthorized("Invalid credentials")
    token = create_access_token({"sub": str(admin.id), "role": ADMIN_ROLE, "username": admin.username})
    return envelope(
        data={"token": token, "admin": dump(AdminResponse.model_validate(admin))},
        message="Login successful",
    )


@router.get("/profile")
async def get_profile(current_user: Any = Depends(get_current_user)):
    return envelope(data=dump(UserResponse.model_validate(current_user)))


@router.put("/profile")
async def update_profile(
    body: ProfileUpdate,
    db: Session = Depends(get_db),
    current_user: Any = Depends(get_current_user),
):
    for field, value in body.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(current_user, field, str(value) if field == "email" else value)
    db.commit()
    db.refresh(current_user)
    return envelope(data=dump(UserResponse.model_validate(current_user)), message="Profile updated successfully")


@router.post("/profile/photo")
async def upload_profile_photo(
    photo: UploadFile = File(...),
    db: Session = Depends(get_db),
    current_user: Any = Depends(get_current_user),
):
    stored = await upload_service.save_image(photo, upload_service.PROFILE_PHOTOS, "profile")
    previous = current_user.profile_photo
    current_user.profile_photo = stored.url
    db.commit()
    upload_service.delete_url(previous)
    db.refresh(current_user)
    return envelope(data=dump(UserResponse.model_validate(current_user)), message="Profile photo updated")

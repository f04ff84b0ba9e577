"""
Phone OTP login.

Only the sha256 of a code is stored. Issuing a new code invalidates every
earlier unused code for the phone; a code is consumed by its first
successful verification and locked after too many wrong guesses.
"""
import re
import secrets
from datetime import timedelta

from sqlalchemy.orm import Session

from cyclebees.core.config import settings
from cyclebees.core.exceptions import ValidationError
from cyclebees.core.logging_config import get_logger
from cyclebees.core.security import hash_sha256
from cyclebees.core.timeutils import utcnow
from cyclebees.models.user import OtpCode
from cyclebees.services import sms_service

logger = get_logger("otp_service")

PHONE_PATTERN = re.compile(r"^[6-9]\d{9}$")
OTP_LENGTH = 6


def normalize_phone(phone: str) -> str:
    digits = sms_service.format_phone_number(phone or "")
    if not PHONE_PATTERN.match(digits):
        raise ValidationError(
            "Invalid phone number",
            errors=[{"field": "phone", "message": "Enter a valid 10-digit Indian mobile number"}],
        )
    return digits


def generate_otp() -> str:
    return "".join(str(secrets.randbelow(10)) for _ in range(OTP_LENGTH))


def issue_otp(db: Session, phone: str) -> OtpCode:
    """Create a fresh code for ``phone`` and hand it to the SMS gateway."""
    phone = normalize_phone(phone)
    now = utcnow()
    db.query(OtpCode).filter(
        OtpCode.phone == phone,
        OtpCode.is_used == False,
    ).update({OtpCode.is_used: True}, synchronize_session=False)

    otp = generate_otp()
    record = OtpCode(
        phone=phone,
        otp_hash=hash_sha256(otp),
        expires_at=now + timedelta(minutes=settings.OTP_EXPIRE_MINUTES),
    )
    db.add(record)
    db.flush()
    sms_service.send_otp_sms(phone, otp)
    logger.info("OTP issued", extra={"phone": phone, "otp_id": record.id})
    return record


def verify_otp(db: Session, phone: str, otp: str) -> str:
    """Consume a valid code. Returns the normalized phone."""
    phone = normalize_phone(phone)
    otp = (otp or "").strip()
    if not re.fullmatch(r"\d{%d}" % OTP_LENGTH, otp):
        raise ValidationError(
            "Invalid OTP",
            errors=[{"field": "otp", "message": f"OTP must be {OTP_LENGTH} digits"}],
        )

    now = utcnow()
    record = db.query(OtpCode).filter(
        OtpCode.phone == phone,
        OtpCode.is_used == False,
        OtpCode.expires_at > now,
    ).order_by(OtpCode.created_at.desc(), OtpCode.id.desc()).first()

    if record is None or record.attempts >= settings.OTP_MAX_ATTEMPTS:
        raise ValidationError("OTP expired or not found. Please request a new one.")

    if record.otp_hash != hash_sha256(otp):
        record.attempts += 1
        db.commit()
        logger.warning("Wrong OTP attempt", extra={"phone": phone, "attempts": record.attempts})
        raise ValidationError("Invalid OTP")

    record.is_used = True
    db.flush()
    return phone

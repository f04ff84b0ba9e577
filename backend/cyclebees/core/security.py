from datetime import timedelta
from typing import Optional
from jose import JWTError, jwt
import bcrypt
import secrets
import hashlib
from cyclebees.core.config import settings
from cyclebees.core.timeutils import utcnow

ACCESS_TOKEN_TYPE = "access"
REGISTRATION_TOKEN_TYPE = "registration"


def hash_sha256(text: str) -> str:
    """Hash text using SHA-256."""
    return hashlib.sha256(text.encode('utf-8')).hexdigest()


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        password_bytes = plain_password.encode('utf-8')[:72]
        return bcrypt.checkpw(password_bytes, hashed_password.encode('utf-8'))
    except ValueError:
        return False


def get_password_hash(password: str) -> str:
    # bcrypt only looks at the first 72 bytes
    password_bytes = password.encode('utf-8')[:72]
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(password_bytes, salt).decode('utf-8')


def _encode(data: dict, token_type: str, expires_delta: timedelta) -> str:
    to_encode = data.copy()
    now = utcnow()
    to_encode.update({
        "exp": now + expires_delta,
        "iat": now,
        "jti": secrets.token_urlsafe(16),
        "type": token_type,
    })
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    return _encode(data, ACCESS_TOKEN_TYPE, expires_delta)


def create_registration_token(phone: str) -> str:
    """Short-lived proof that `phone` passed OTP verification but has no account yet."""
    return _encode(
        {"sub": phone},
        REGISTRATION_TOKEN_TYPE,
        timedelta(minutes=settings.REGISTRATION_TOKEN_EXPIRE_MINUTES),
    )


def decode_token(token: str, expected_type: str = ACCESS_TOKEN_TYPE) -> Optional[dict]:
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
        )
    except JWTError:
        return None
    if payload.get("type") != expected_type:
        return None
    return payload


def decode_access_token(token: str) -> Optional[dict]:
    return decode_token(token, ACCESS_TOKEN_TYPE)

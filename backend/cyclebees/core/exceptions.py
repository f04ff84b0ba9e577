"""
Application error taxonomy.

Every error carries the HTTP status it renders with; the handlers in
cyclebees.main turn them into the standard response envelope.
"""
from typing import Any, Dict, List, Optional

from fastapi import status


class AppError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "An error occurred"

    def __init__(self, message: Optional[str] = None, errors: Optional[List[Dict[str, Any]]] = None):
        self.message = message or self.default_message
        self.errors = errors
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Validation error"


class Unauthorized(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Access token required"


class Forbidden(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Access denied"


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class Conflict(AppError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "The resource was modified concurrently, please retry"


class InternalError(AppError):
    default_message = "Internal server error"


class InvalidTransition(AppError):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot change status from '{current}' to '{requested}'")


# ── Coupon errors ─────────────────────────────────────────────

class CouponError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Coupon cannot be applied"


class CouponNotFound(CouponError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Coupon not found or inactive"


class CouponExpired(CouponError):
    default_message = "Coupon expired"


class CouponExhausted(CouponError):
    default_message = "Coupon usage limit reached"


class BelowMinimumAmount(CouponError):
    def __init__(self, min_amount):
        self.min_amount = min_amount
        super().__init__(f"Minimum amount for coupon is {min_amount}")


class NotApplicable(CouponError):
    default_message = "Coupon not applicable to selected items"

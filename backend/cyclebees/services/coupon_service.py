"""
Coupon evaluation.

Two phases:
- ``preview`` validates and prices a coupon without touching the store.
  The booking form calls it while the user is still editing.
- ``commit`` runs the same checks and then consumes one use, inside the
  caller's transaction, keyed by the request being created. Committing the
  same coupon for the same request twice consumes a single use.
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from cyclebees.core.exceptions import (
    BelowMinimumAmount,
    CouponExhausted,
    CouponExpired,
    CouponNotFound,
    NotApplicable,
    ValidationError,
)
from cyclebees.core.logging_config import get_logger
from cyclebees.core.timeutils import utcnow
from cyclebees.models.coupon import Coupon, CouponUsage, DiscountTypeEnum
from cyclebees.models.request_status import RequestTypeEnum

logger = get_logger("coupon_service")

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass
class CouponQuote:
    coupon: Coupon
    total_amount: Decimal
    discount: Decimal

    @property
    def discount_type(self) -> str:
        return DiscountTypeEnum(self.coupon.discount_type).value

    @property
    def net_amount(self) -> Decimal:
        return self.total_amount - self.discount


def normalize_code(code: Optional[str]) -> str:
    return (code or "").strip().upper()


def calculate_discount(coupon: Coupon, total_amount) -> Decimal:
    """Discount for ``total_amount``; never negative, never above the total."""
    total = to_money(total_amount)
    value = to_money(coupon.discount_value)
    if DiscountTypeEnum(coupon.discount_type) == DiscountTypeEnum.PERCENTAGE:
        discount = total * value / Decimal(100)
        cap = to_money(coupon.max_discount) if coupon.max_discount is not None else total
        discount = min(discount, cap)
    else:
        discount = value
    discount = min(discount, total)
    return max(to_money(discount), Decimal("0.00"))


def _validate_inputs(code: str, request_type, items: List[str], total_amount) -> None:
    errors = []
    if not code:
        errors.append({"field": "code", "message": "Coupon code required"})
    try:
        RequestTypeEnum(request_type)
    except ValueError:
        errors.append({"field": "requestType", "message": "Request type must be repair or rental"})
    if not items:
        errors.append({"field": "items", "message": "Items array required"})
    if total_amount is None or to_money(total_amount) < 0:
        errors.append({"field": "totalAmount", "message": "Total amount must be zero or more"})
    if errors:
        raise ValidationError(errors=errors)


def evaluate(coupon: Optional[Coupon], items: Iterable[str], total_amount, now: Optional[datetime] = None) -> Decimal:
    """Run the eligibility checks in order (first failure wins) and price the coupon."""
    now = now or utcnow()
    if coupon is None or not coupon.is_active:
        raise CouponNotFound()
    if coupon.expires_at is not None and coupon.expires_at <= now:
        raise CouponExpired()
    if coupon.usage_limit is not None and coupon.usage_count >= coupon.usage_limit:
        raise CouponExhausted()
    total = to_money(total_amount)
    min_amount = to_money(coupon.min_amount or 0)
    if total < min_amount:
        raise BelowMinimumAmount(min_amount)
    if not set(items) & set(coupon.applicable_items or []):
        raise NotApplicable()
    return calculate_discount(coupon, total)


def _find_coupon(db: Session, code: str) -> Optional[Coupon]:
    return db.query(Coupon).filter(Coupon.code == code, Coupon.is_active == True).first()


def preview(db: Session, code: str, request_type, items: List[str], total_amount) -> CouponQuote:
    """Validate and price a coupon. Read-only."""
    code = normalize_code(code)
    _validate_inputs(code, request_type, items, total_amount)
    coupon = _find_coupon(db, code)
    discount = evaluate(coupon, items, total_amount)
    return CouponQuote(coupon=coupon, total_amount=to_money(total_amount), discount=discount)


def commit(
    db: Session,
    code: str,
    request_type,
    items: List[str],
    total_amount,
    request_id: int,
    user_id: int,
) -> CouponQuote:
    """
    Consume one use of the coupon for ``request_id``.

    Flushes but never commits: the caller commits the request row and the
    usage increment together.
    """
    code = normalize_code(code)
    request_type = RequestTypeEnum(request_type)
    _validate_inputs(code, request_type, items, total_amount)
    coupon = _find_coupon(db, code)
    if coupon is None:
        raise CouponNotFound()

    existing = db.query(CouponUsage).filter(
        CouponUsage.coupon_id == coupon.id,
        CouponUsage.request_type == request_type.value,
        CouponUsage.request_id == request_id,
    ).first()
    if existing:
        logger.info(
            "Coupon %s already committed for %s request %s", coupon.code, request_type.value, request_id,
        )
        return CouponQuote(coupon=coupon, total_amount=to_money(total_amount), discount=to_money(existing.discount_amount))

    discount = evaluate(coupon, items, total_amount)

    # Re-checks the limit in the same statement so concurrent commits cannot overshoot it
    consumed = db.query(Coupon).filter(
        Coupon.id == coupon.id,
        or_(Coupon.usage_limit.is_(None), Coupon.usage_count < Coupon.usage_limit),
    ).update({Coupon.usage_count: Coupon.usage_count + 1}, synchronize_session=False)
    if consumed == 0:
        raise CouponExhausted()

    db.add(CouponUsage(
        coupon_id=coupon.id,
        user_id=user_id,
        request_type=request_type.value,
        request_id=request_id,
        discount_amount=discount,
    ))
    db.flush()
    db.refresh(coupon)
    logger.info(
        "Coupon %s committed for %s request %s (discount %s)",
        coupon.code, request_type.value, request_id, discount,
        extra={"coupon_id": coupon.id, "request_id": request_id, "user_id": user_id},
    )
    return CouponQuote(coupon=coupon, total_amount=to_money(total_amount), discount=discount)


def available_coupons(db: Session) -> List[Coupon]:
    """Active, unexpired coupons that still have uses left."""
    now = utcnow()
    return db.query(Coupon).filter(
        Coupon.is_active == True,
        or_(Coupon.expires_at.is_(None), Coupon.expires_at > now),
        or_(Coupon.usage_limit.is_(None), Coupon.usage_count < Coupon.usage_limit),
    ).order_by(Coupon.created_at.desc()).all()

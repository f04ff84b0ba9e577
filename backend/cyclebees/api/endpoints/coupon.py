from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from cyclebees.api.endpoints.auth import get_current_admin, get_current_user
from cyclebees.core.database import get_db
from cyclebees.core.exceptions import NotFound, ValidationError
from cyclebees.core.logging_config import get_logger
from cyclebees.models.coupon import Coupon, CouponUsage, DiscountTypeEnum
from cyclebees.schemas.common import dump, dump_list, envelope, paginate
from cyclebees.schemas.coupon import (
    CouponApplyRequest,
    CouponApplyResponse,
    CouponCreate,
    CouponResponse,
    CouponUpdate,
)
from cyclebees.services import coupon_service

logger = get_logger("coupon")

router = APIRouter()


@router.post("/apply")
async def apply_coupon(
    body: CouponApplyRequest,
    db: Session = Depends(get_db),
    current_user: Any = Depends(get_current_user),
):
    """Preview a coupon against the booking being edited. Never consumes a use."""
    quote = coupon_service.preview(db, body.code, body.request_type, body.items, body.total_amount)
    data = CouponApplyResponse(
        code=quote.coupon.code,
        discount=quote.discount,
        discount_type=quote.discount_type,
        net_amount=quote.net_amount,
    )
    return envelope(data=dump(data), message="Coupon applied successfully")


@router.get("/available")
async def available_coupons(
    db: Session = Depends(get_db),
    current_user: Any = Depends(get_current_user),
):
    coupons = coupon_service.available_coupons(db)
    return envelope(data=dump_list(CouponResponse, coupons))


# ── Admin ──────────────────────────────────────────────────────

def _get_coupon(db: Session, coupon_id: int) -> Coupon:
    coupon = db.query(Coupon).filter(Coupon.id == coupon_id).first()
    if coupon is None:
        raise NotFound("Coupon not found")
    return coupon


@router.get("/admin")
async def list_coupons(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    current_admin: Any = Depends(get_current_admin),
):
    query = db.query(Coupon)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(Coupon.code.ilike(pattern), Coupon.description.ilike(pattern)))
    coupons, pagination = paginate(query.order_by(Coupon.created_at.desc()), page, limit)
    return envelope(data={"coupons": dump_list(CouponResponse, coupons), "pagination": pagination})


@router.get("/admin/{coupon_id}")
async def get_coupon(
    coupon_id: int,
    db: Session = Depends(get_db),
    current_admin: Any = Depends(get_current_admin),
):
    return envelope(data=dump(CouponResponse.model_validate(_get_coupon(db, coupon_id))))


@router.post("/admin", status_code=201)
async def create_coupon(
    body: CouponCreate,
    db: Session = Depends(get_db),
    current_admin: Any = Depends(get_current_admin),
):
    if db.query(Coupon).filter(Coupon.code == body.code).first():
        raise ValidationError(
            "Coupon code already exists",
            errors=[{"field": "code", "message": f"{body.code} is already in use"}],
        )
    values = body.model_dump()
    values["applicable_items"] = [item.value for item in body.applicable_items]
    coupon = Coupon(**values)
    db.add(coupon)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ValidationError("Coupon code already exists")
    db.refresh(coupon)
    logger.info("Coupon %s created by admin %s", coupon.code, current_admin.id)
    return envelope(data=dump(CouponResponse.model_validate(coupon)), message="Coupon created successfully")


@router.put("/admin/{coupon_id}")
async def update_coupon(
    coupon_id: int,
    body: CouponUpdate,
    db: Session = Depends(get_db),
    current_admin: Any = Depends(get_current_admin),
):
    coupon = _get_coupon(db, coupon_id)
    values = body.model_dump(exclude_unset=True)
    if "applicable_items" in values and values["applicable_items"] is not None:
        values["applicable_items"] = [item.value for item in body.applicable_items]
    if values.get("usage_limit") is not None and values["usage_limit"] < coupon.usage_count:
        raise ValidationError(
            "Usage limit cannot be below current usage",
            errors=[{"field": "usageLimit", "message": f"Coupon has already been used {coupon.usage_count} times"}],
        )
    if (
        values.get("discount_value") is not None
        and DiscountTypeEnum(coupon.discount_type) == DiscountTypeEnum.PERCENTAGE
        and values["discount_value"] > 100
    ):
        raise ValidationError(
            "Percentage discount cannot exceed 100",
            errors=[{"field": "discountValue", "message": "Percentage discount cannot exceed 100"}],
        )
    for field, value in values.items():
        setattr(coupon, field, value)
    db.commit()
    db.refresh(coupon)
    return envelope(data=dump(CouponResponse.model_validate(coupon)), message="Coupon updated successfully")


@router.delete("/admin/{coupon_id}")
async def delete_coupon(
    coupon_id: int,
    db: Session = Depends(get_db),
    current_admin: Any = Depends(get_current_admin),
):
    coupon = _get_coupon(db, coupon_id)
    used = db.query(CouponUsage).filter(CouponUsage.coupon_id == coupon.id).count()
    if used:
        # Requests still reference it; keep the row and retire it instead.
        coupon.is_active = False
        message = "Coupon has been used and was deactivated instead of deleted"
    else:
        db.delete(coupon)
        message = "Coupon deleted successfully"
    db.commit()
    logger.info("Coupon %s removed by admin %s (%s)", coupon_id, current_admin.id, "deactivated" if used else "deleted")
    return envelope(message=message)

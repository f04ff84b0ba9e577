"""
Booking submission.

A submission is priced from the catalogue, optionally discounted by a
coupon in commit mode, and written together with its line items in a
single transaction. Any failure rolls the whole booking back, including
the coupon's usage increment, and removes media already written to disk.

Clients may send a ``draft_token`` per booking form; a retry carrying the
same token returns the booking that was already created.
"""
from datetime import datetime, time, timedelta
from decimal import Decimal
from typing import List, Optional, Type

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from cyclebees.core.config import settings
from cyclebees.core.exceptions import Conflict, ValidationError
from cyclebees.core.logging_config import get_logger
from cyclebees.core.timeutils import utcnow
from cyclebees.models.rental import Bicycle, RentalRequest
from cyclebees.models.repair import RepairRequest, RepairRequestFile, RepairRequestService, RepairService, TimeSlot
from cyclebees.models.request_status import RequestStatusEnum, RequestTypeEnum
from cyclebees.models.user import User
from cyclebees.schemas.rental import RentalRequestCreate
from cyclebees.schemas.repair import RepairRequestCreate
from cyclebees.services import coupon_service, lifecycle, pricing, upload_service
from cyclebees.services.coupon_service import to_money

logger = get_logger("submission_service")


def _find_draft(db: Session, model: Type, user_id: int, draft_token: Optional[str]):
    if not draft_token:
        return None
    existing = db.query(model).filter(model.user_id == user_id, model.draft_token == draft_token).first()
    if existing is not None:
        lifecycle.apply_expiry(db, existing)
    return existing


def _expiry(now: datetime) -> datetime:
    return now + timedelta(minutes=settings.REQUEST_EXPIRY_MINUTES)


def _apply_coupon(db: Session, request, request_type: RequestTypeEnum, code: Optional[str],
                  items: List[str], total: Decimal, user_id: int) -> Decimal:
    if not code:
        return Decimal("0.00")
    quote = coupon_service.commit(db, code, request_type, items, total, request.id, user_id)
    request.coupon_id = quote.coupon.id
    return quote.discount


def _replayed(db: Session, model: Type, user_id: int, draft_token: Optional[str]):
    """After a unique-constraint race on the draft token, return the winner's row."""
    existing = _find_draft(db, model, user_id, draft_token)
    if existing is None:
        raise Conflict("Request could not be saved, please retry")
    logger.info("Draft %s already submitted by user %s", draft_token, user_id)
    return existing


def _load_services(db: Session, service_ids: List[int]) -> List[RepairService]:
    unique_ids = list(dict.fromkeys(service_ids))
    found = db.query(RepairService).filter(
        RepairService.id.in_(unique_ids),
        RepairService.is_active == True,
    ).all()
    by_id = {s.id: s for s in found}
    missing = [sid for sid in unique_ids if sid not in by_id]
    if missing:
        raise ValidationError(
            "Some selected services are not available",
            errors=[{"field": "services", "message": f"Unknown or inactive service ids: {missing}"}],
        )
    return [by_id[sid] for sid in unique_ids]


def submit_repair(db: Session, user: User, payload: RepairRequestCreate,
                  media: Optional[List[tuple]] = None) -> RepairRequest:
    """
    Create a pending repair request.

    ``media`` holds already validated ``(upload, file_type, content)``
    tuples from ``upload_service.prepare_repair_media``.
    """
    existing = _find_draft(db, RepairRequest, user.id, payload.draft_token)
    if existing is not None:
        logger.info("Replaying repair draft %s -> request %s", payload.draft_token, existing.id)
        return existing

    services = _load_services(db, payload.services)
    slot = db.query(TimeSlot).filter(TimeSlot.id == payload.time_slot_id, TimeSlot.is_active == True).first()
    if slot is None:
        raise ValidationError(
            "Selected time slot is not available",
            errors=[{"field": "timeSlotId", "message": "Unknown or inactive time slot"}],
        )

    total, items = pricing.repair_quote(db, services)
    pricing.check_client_total(total, payload.total_amount)

    now = utcnow()
    request = RepairRequest(
        user_id=user.id,
        contact_number=payload.contact_number,
        alternate_number=payload.alternate_number,
        email=str(payload.email),
        address=payload.address,
        notes=payload.notes,
        preferred_date=datetime.combine(payload.preferred_date, time.min),
        time_slot_id=slot.id,
        payment_method=payload.payment_method,
        total_amount=total,
        discount_amount=Decimal("0.00"),
        net_amount=total,
        status=RequestStatusEnum.PENDING,
        draft_token=payload.draft_token,
        expires_at=_expiry(now),
        created_at=now,
    )

    stored = []
    try:
        db.add(request)
        db.flush()

        discount = _apply_coupon(db, request, RequestTypeEnum.REPAIR, payload.coupon_code, items, total, user.id)
        request.discount_amount = discount
        request.net_amount = total - discount

        prices = [to_money(s.price) for s in services]
        shares = pricing.allocate_discount(prices, total, discount)
        for service, price, share in zip(services, prices, shares):
            db.add(RepairRequestService(
                repair_request_id=request.id,
                repair_service_id=service.id,
                price=price,
                discount_amount=share,
            ))

        upload_service.store_repair_media(media or [], stored)
        for order, item in enumerate(stored):
            db.add(RepairRequestFile(
                repair_request_id=request.id,
                file_url=item.url,
                file_type=item.file_type,
                display_order=order,
            ))

        db.commit()
    except IntegrityError:
        db.rollback()
        upload_service.remove_files(stored)
        return _replayed(db, RepairRequest, user.id, payload.draft_token)
    except Exception:
        db.rollback()
        upload_service.remove_files(stored)
        raise

    db.refresh(request)
    logger.info(
        "Repair request %s created for user %s (total %s, discount %s)",
        request.id, user.id, request.total_amount, request.discount_amount,
        extra={"request_id": request.id, "user_id": user.id, "files": len(stored)},
    )
    return request


def submit_rental(db: Session, user: User, payload: RentalRequestCreate) -> RentalRequest:
    """Create a pending rental request."""
    existing = _find_draft(db, RentalRequest, user.id, payload.draft_token)
    if existing is not None:
        logger.info("Replaying rental draft %s -> request %s", payload.draft_token, existing.id)
        return existing

    bicycle = db.query(Bicycle).filter(Bicycle.id == payload.bicycle_id).first()
    if bicycle is None or not bicycle.is_available:
        raise ValidationError(
            "Selected bicycle is not available",
            errors=[{"field": "bicycleId", "message": "Unknown or unavailable bicycle"}],
        )

    total, items = pricing.rental_quote(bicycle, payload.duration_type, payload.duration_count)
    pricing.check_client_total(total, payload.total_amount)

    now = utcnow()
    request = RentalRequest(
        user_id=user.id,
        bicycle_id=bicycle.id,
        contact_number=payload.contact_number,
        alternate_number=payload.alternate_number,
        email=str(payload.email) if payload.email else None,
        delivery_address=payload.delivery_address,
        special_instructions=payload.special_instructions,
        duration_type=payload.duration_type,
        duration_count=payload.duration_count,
        payment_method=payload.payment_method,
        total_amount=total,
        discount_amount=Decimal("0.00"),
        net_amount=total,
        status=RequestStatusEnum.PENDING,
        draft_token=payload.draft_token,
        expires_at=_expiry(now),
        created_at=now,
    )

    try:
        db.add(request)
        db.flush()
        discount = _apply_coupon(db, request, RequestTypeEnum.RENTAL, payload.coupon_code, items, total, user.id)
        request.discount_amount = discount
        request.net_amount = total - discount
        db.commit()
    except IntegrityError:
        db.rollback()
        return _replayed(db, RentalRequest, user.id, payload.draft_token)
    except Exception:
        db.rollback()
        raise

    db.refresh(request)
    logger.info(
        "Rental request %s created for user %s (total %s, discount %s)",
        request.id, user.id, request.total_amount, request.discount_amount,
        extra={"request_id": request.id, "user_id": user.id, "bicycle_id": bicycle.id},
    )
    return request

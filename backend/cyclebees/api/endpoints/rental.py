from typing import Any, List, Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile
from sqlalchemy.orm import Session, joinedload

from cyclebees.api.endpoints.auth import get_current_admin, get_current_role, get_current_user
from cyclebees.core.database import get_db
from cyclebees.core.exceptions import NotFound, ValidationError
from cyclebees.core.logging_config import get_logger
from cyclebees.models.rental import Bicycle, BicyclePhoto, RentalRequest
from cyclebees.models.request_status import RequestStatusEnum, RequestTypeEnum
from cyclebees.schemas.common import dump, dump_list, envelope, paginate
from cyclebees.schemas.rental import (
    BicycleCreate,
    BicycleResponse,
    BicycleUpdate,
    RentalRequestCreate,
    RentalRequestDetail,
    RentalRequestResponse,
)
from cyclebees.schemas.repair import StatusUpdate
from cyclebees.services import lifecycle, status_service, submission_service, upload_service

logger = get_logger("rental")

router = APIRouter()

MAX_BICYCLE_PHOTOS = 5


def _status_filter(status: Optional[str]) -> Optional[RequestStatusEnum]:
    if not status:
        return None
    try:
        value = RequestStatusEnum(status)
    except ValueError:
        raise ValidationError(errors=[{"field": "status", "message": f"Unknown status '{status}'"}])
    if value not in lifecycle.statuses_for(RequestTypeEnum.RENTAL):
        raise ValidationError(errors=[{"field": "status", "message": f"'{status}' is not a rental status"}])
    return value


def _get_bicycle(db: Session, bicycle_id: int) -> Bicycle:
    bicycle = db.query(Bicycle).options(joinedload(Bicycle.photos)).filter(Bicycle.id == bicycle_id).first()
    if bicycle is None:
        raise NotFound("Bicycle not found")
    return bicycle


# ── Public catalogue ───────────────────────────────────────────

@router.get("/bicycles")
async def list_bicycles(db: Session = Depends(get_db)):
    bicycles = db.query(Bicycle).options(joinedload(Bicycle.photos)).filter(
        Bicycle.is_available == True
    ).order_by(Bicycle.name).all()
    return envelope(data=dump_list(BicycleResponse, bicycles))


@router.get("/bicycles/{bicycle_id}")
async def get_bicycle(bicycle_id: int, db: Session = Depends(get_db)):
    bicycle = _get_bicycle(db, bicycle_id)
    if not bicycle.is_available:
        raise NotFound("Bicycle not found")
    return envelope(data=dump(BicycleResponse.model_validate(bicycle)))


# ── User requests ──────────────────────────────────────────────

@router.post("/requests", status_code=201)
async def create_rental_request(
    body: RentalRequestCreate,
    db: Session = Depends(get_db),
    current_user: Any = Depends(get_current_user),
):
    rental_request = submission_service.submit_rental(db, current_user, body)
    return envelope(
        data={
            "requestId": rental_request.id,
            "status": rental_request.status.value,
            "expiresAt": rental_request.expires_at.isoformat(),
            "totalAmount": float(rental_request.total_amount),
            "discountAmount": float(rental_request.discount_amount),
            "netAmount": float(rental_request.net_amount),
        },
        message="Rental request created successfully",
    )


@router.get("/requests")
async def list_my_requests(
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: Any = Depends(get_current_user),
):
    status_value = _status_filter(status)
    lifecycle.expire_stale(db, RequestTypeEnum.RENTAL, user_id=current_user.id)
    query = db.query(RentalRequest).options(joinedload(RentalRequest.bicycle), joinedload(RentalRequest.coupon)).filter(
        RentalRequest.user_id == current_user.id
    )
    if status_value:
        query = query.filter(RentalRequest.status == status_value)
    requests = query.order_by(RentalRequest.created_at.desc()).all()
    return envelope(data=dump_list(RentalRequestResponse, requests))


@router.get("/requests/{request_id}")
async def get_my_request(
    request_id: int,
    db: Session = Depends(get_db),
    current_user: Any = Depends(get_current_user),
):
    rental_request = db.query(RentalRequest).filter(
        RentalRequest.id == request_id,
        RentalRequest.user_id == current_user.id,
    ).first()
    if rental_request is None:
        raise NotFound("Rental request not found")
    lifecycle.apply_expiry(db, rental_request)
    return envelope(data=dump(RentalRequestDetail.model_validate(rental_request)))


# ── Admin: requests ────────────────────────────────────────────

@router.get("/admin/requests")
async def admin_list_requests(
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_admin: Any = Depends(get_current_admin),
):
    status_value = _status_filter(status)
    lifecycle.expire_stale(db, RequestTypeEnum.RENTAL)
    query = db.query(RentalRequest).options(joinedload(RentalRequest.bicycle), joinedload(RentalRequest.coupon))
    if status_value:
        query = query.filter(RentalRequest.status == status_value)
    requests, pagination = paginate(query.order_by(RentalRequest.created_at.desc()), page, limit)
    return envelope(data={"requests": dump_list(RentalRequestResponse, requests), "pagination": pagination})


@router.get("/admin/requests/{request_id}")
async def admin_get_request(
    request_id: int,
    db: Session = Depends(get_db),
    current_admin: Any = Depends(get_current_admin),
):
    rental_request = db.query(RentalRequest).filter(RentalRequest.id == request_id).first()
    if rental_request is None:
        raise NotFound("Rental request not found")
    lifecycle.apply_expiry(db, rental_request)
    data = dump(RentalRequestDetail.model_validate(rental_request))
    data["user"] = {
        "id": rental_request.user.id,
        "fullName": rental_request.user.full_name,
        "phone": rental_request.user.phone,
    }
    return envelope(data=data)


@router.patch("/admin/requests/{request_id}/status")
async def admin_update_status(
    request_id: int,
    body: StatusUpdate,
    db: Session = Depends(get_db),
    role: str = Depends(get_current_role),
):
    rental_request = status_service.update_status(
        db, RequestTypeEnum.RENTAL, request_id, role, body.status, body.rejection_note,
    )
    return envelope(
        data=dump(RentalRequestResponse.model_validate(rental_request)),
        message=f"Request status updated to {rental_request.status.value}",
    )


# ── Admin: bicycles ────────────────────────────────────────────

@router.get("/admin/bicycles")
async def admin_list_bicycles(
    db: Session = Depends(get_db),
    current_admin: Any = Depends(get_current_admin),
):
    bicycles = db.query(Bicycle).options(joinedload(Bicycle.photos)).order_by(Bicycle.created_at.desc()).all()
    return envelope(data=dump_list(BicycleResponse, bicycles))


@router.get("/admin/bicycles/{bicycle_id}")
async def admin_get_bicycle(
    bicycle_id: int,
    db: Session = Depends(get_db),
    current_admin: Any = Depends(get_current_admin),
):
    """Unlike the public route, unavailable bicycles are returned too."""
    return envelope(data=dump(BicycleResponse.model_validate(_get_bicycle(db, bicycle_id))))


@router.post("/admin/bicycles", status_code=201)
async def admin_create_bicycle(
    body: BicycleCreate,
    db: Session = Depends(get_db),
    current_admin: Any = Depends(get_current_admin),
):
    bicycle = Bicycle(**body.model_dump())
    db.add(bicycle)
    db.commit()
    db.refresh(bicycle)
    logger.info("Bicycle %s created by admin %s", bicycle.id, current_admin.id)
    return envelope(data=dump(BicycleResponse.model_validate(bicycle)), message="Bicycle created successfully")


@router.put("/admin/bicycles/{bicycle_id}")
async def admin_update_bicycle(
    bicycle_id: int,
    body: BicycleUpdate,
    db: Session = Depends(get_db),
    current_admin: Any = Depends(get_current_admin),
):
    bicycle = _get_bicycle(db, bicycle_id)
    for field, value in body.model_dump(exclude_unset=True).items():
        setattr(bicycle, field, value)
    db.commit()
    db.refresh(bicycle)
    return envelope(data=dump(BicycleResponse.model_validate(bicycle)), message="Bicycle updated successfully")


@router.delete("/admin/bicycles/{bicycle_id}")
async def admin_delete_bicycle(
    bicycle_id: int,
    db: Session = Depends(get_db),
    current_admin: Any = Depends(get_current_admin),
):
    bicycle = _get_bicycle(db, bicycle_id)
    has_requests = db.query(RentalRequest).filter(RentalRequest.bicycle_id == bicycle.id).count()
    if has_requests:
        bicycle.is_available = False
        message = "Bicycle has rental history and was marked unavailable"
    else:
        urls = [photo.photo_url for photo in bicycle.photos]
        db.delete(bicycle)
        message = "Bicycle deleted successfully"
    db.commit()
    if not has_requests:
        for url in urls:
            upload_service.delete_url(url)
    return envelope(message=message)


@router.post("/admin/bicycles/{bicycle_id}/photos", status_code=201)
async def admin_upload_bicycle_photos(
    bicycle_id: int,
    photos: List[UploadFile] = File(...),
    db: Session = Depends(get_db),
    current_admin: Any = Depends(get_current_admin),
):
    bicycle = _get_bicycle(db, bicycle_id)
    if len(bicycle.photos) + len(photos) > MAX_BICYCLE_PHOTOS:
        raise ValidationError(
            f"A bicycle can have at most {MAX_BICYCLE_PHOTOS} photos",
            errors=[{"field": "photos", "message": f"Already has {len(bicycle.photos)} photos"}],
        )
    base_order = len(bicycle.photos)
    stored = []
    try:
        for offset, photo in enumerate(photos):
            item = await upload_service.save_image(photo, upload_service.BICYCLES, "bicycle")
            stored.append(item)
            db.add(BicyclePhoto(bicycle_id=bicycle.id, photo_url=item.url, display_order=base_order + offset))
        db.commit()
    except Exception:
        db.rollback()
        upload_service.remove_files(stored)
        raise
    db.refresh(bicycle)
    return envelope(data=dump(BicycleResponse.model_validate(bicycle)), message="Photos uploaded successfully")


@router.delete("/admin/bicycles/{bicycle_id}/photos/{photo_id}")
async def admin_delete_bicycle_photo(
    bicycle_id: int,
    photo_id: int,
    db: Session = Depends(get_db),
    current_admin: Any = Depends(get_current_admin),
):
    photo = db.query(BicyclePhoto).filter(BicyclePhoto.id == photo_id, BicyclePhoto.bicycle_id == bicycle_id).first()
    if photo is None:
        raise NotFound("Photo not found")
    url = photo.photo_url
    db.delete(photo)
    db.commit()
    upload_service.delete_url(url)
    return envelope(message="Photo deleted successfully")

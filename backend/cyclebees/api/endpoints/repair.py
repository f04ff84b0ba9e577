import json
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session, joinedload

from cyclebees.api.endpoints.auth import get_current_admin, get_current_role, get_current_user
from cyclebees.core.database import get_db
from cyclebees.core.exceptions import NotFound, ValidationError
from cyclebees.core.logging_config import get_logger
from cyclebees.models.repair import MechanicCharge, RepairRequest, RepairRequestService, RepairService, TimeSlot
from cyclebees.models.request_status import RequestStatusEnum, RequestTypeEnum
from cyclebees.schemas.common import dump, dump_list, envelope, field_errors, paginate
from cyclebees.schemas.repair import (
    MechanicChargeUpdate,
    RepairRequestCreate,
    RepairRequestDetail,
    RepairRequestResponse,
    RepairServiceCreate,
    RepairServiceResponse,
    RepairServiceUpdate,
    StatusUpdate,
    TimeSlotCreate,
    TimeSlotResponse,
)
from cyclebees.services import lifecycle, pricing, status_service, submission_service, upload_service

logger = get_logger("repair")

router = APIRouter()


def _detail_query(db: Session):
    return db.query(RepairRequest).options(
        joinedload(RepairRequest.time_slot),
        joinedload(RepairRequest.coupon),
        joinedload(RepairRequest.services).joinedload(RepairRequestService.service),
        joinedload(RepairRequest.files),
    )


def _status_filter(status: Optional[str]) -> Optional[RequestStatusEnum]:
    if not status:
        return None
    try:
        value = RequestStatusEnum(status)
    except ValueError:
        raise ValidationError(errors=[{"field": "status", "message": f"Unknown status '{status}'"}])
    if value not in lifecycle.statuses_for(RequestTypeEnum.REPAIR):
        raise ValidationError(errors=[{"field": "status", "message": f"'{status}' is not a repair status"}])
    return value


# ── Public catalogue ───────────────────────────────────────────

@router.get("/services")
async def list_services(db: Session = Depends(get_db)):
    services = db.query(RepairService).filter(RepairService.is_active == True).order_by(RepairService.name).all()
    return envelope(data=dump_list(RepairServiceResponse, services))


@router.get("/time-slots")
async def list_time_slots(db: Session = Depends(get_db)):
    slots = db.query(TimeSlot).filter(TimeSlot.is_active == True).order_by(TimeSlot.start_time).all()
    return envelope(data=dump_list(TimeSlotResponse, slots))


@router.get("/mechanic-charge")
async def get_mechanic_charge(db: Session = Depends(get_db)):
    return envelope(data={"amount": float(pricing.active_mechanic_charge(db))})


# ── User requests ──────────────────────────────────────────────

def _parse_services(values: List[str]) -> List[Any]:
    """``services`` arrives as a JSON array (ids or ``{serviceId}`` objects) or repeated ids."""
    ids: List[Any] = []
    for raw in values:
        raw = (raw or "").strip()
        if not raw:
            continue
        if raw.startswith("["):
            try:
                parsed = json.loads(raw)
            except json.JSONDecodeError:
                raise ValidationError(errors=[{"field": "services", "message": "Services must be a JSON array"}])
        else:
            parsed = raw.split(",")
        for item in parsed:
            if isinstance(item, dict):
                item = item.get("serviceId", item.get("id"))
            ids.append(item)
    return ids


@router.post("/requests", status_code=201)
async def create_repair_request(
    request: Request,
    db: Session = Depends(get_db),
    current_user: Any = Depends(get_current_user),
):
    """Multipart: booking fields plus up to 5 images and 1 video under ``files``."""
    form = await request.form()
    fields = {key: value for key, value in form.items() if isinstance(value, str) and key != "services"}
    fields["services"] = _parse_services([v for v in form.getlist("services") if isinstance(v, str)])
    try:
        payload = RepairRequestCreate.model_validate(fields)
    except PydanticValidationError as e:
        raise ValidationError(errors=field_errors(e.errors()))

    uploads = [f for f in form.getlist("files") if not isinstance(f, str)]
    media = await upload_service.prepare_repair_media(uploads)

    repair_request = submission_service.submit_repair(db, current_user, payload, media)
    return envelope(
        data={
            "requestId": repair_request.id,
            "status": repair_request.status.value,
            "expiresAt": repair_request.expires_at.isoformat(),
            "totalAmount": float(repair_request.total_amount),
            "discountAmount": float(repair_request.discount_amount),
            "netAmount": float(repair_request.net_amount),
        },
        message="Repair request created successfully",
    )


@router.get("/requests")
async def list_my_requests(
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: Any = Depends(get_current_user),
):
    status_value = _status_filter(status)
    lifecycle.expire_stale(db, RequestTypeEnum.REPAIR, user_id=current_user.id)
    query = db.query(RepairRequest).options(joinedload(RepairRequest.time_slot), joinedload(RepairRequest.coupon)).filter(
        RepairRequest.user_id == current_user.id
    )
    if status_value:
        query = query.filter(RepairRequest.status == status_value)
    requests = query.order_by(RepairRequest.created_at.desc()).all()
    return envelope(data=dump_list(RepairRequestResponse, requests))


@router.get("/requests/{request_id}")
async def get_my_request(
    request_id: int,
    db: Session = Depends(get_db),
    current_user: Any = Depends(get_current_user),
):
    repair_request = _detail_query(db).filter(
        RepairRequest.id == request_id,
        RepairRequest.user_id == current_user.id,
    ).first()
    if repair_request is None:
        raise NotFound("Repair request not found")
    lifecycle.apply_expiry(db, repair_request)
    return envelope(data=dump(RepairRequestDetail.model_validate(repair_request)))


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
    lifecycle.expire_stale(db, RequestTypeEnum.REPAIR)
    query = db.query(RepairRequest).options(joinedload(RepairRequest.time_slot), joinedload(RepairRequest.coupon))
    if status_value:
        query = query.filter(RepairRequest.status == status_value)
    requests, pagination = paginate(query.order_by(RepairRequest.created_at.desc()), page, limit)
    return envelope(data={"requests": dump_list(RepairRequestResponse, requests), "pagination": pagination})


@router.get("/admin/requests/{request_id}")
async def admin_get_request(
    request_id: int,
    db: Session = Depends(get_db),
    current_admin: Any = Depends(get_current_admin),
):
    repair_request = _detail_query(db).filter(RepairRequest.id == request_id).first()
    if repair_request is None:
        raise NotFound("Repair request not found")
    lifecycle.apply_expiry(db, repair_request)
    data = dump(RepairRequestDetail.model_validate(repair_request))
    data["user"] = {
        "id": repair_request.user.id,
        "fullName": repair_request.user.full_name,
        "phone": repair_request.user.phone,
    }
    return envelope(data=data)


@router.patch("/admin/requests/{request_id}/status")
async def admin_update_status(
    request_id: int,
    body: StatusUpdate,
    db: Session = Depends(get_db),
    role: str = Depends(get_current_role),
):
    repair_request = status_service.update_status(
        db, RequestTypeEnum.REPAIR, request_id, role, body.status, body.rejection_note,
    )
    return envelope(
        data=dump(RepairRequestResponse.model_validate(repair_request)),
        message=f"Request status updated to {repair_request.status.value}",
    )


# ── Admin: catalogue ───────────────────────────────────────────

@router.get("/admin/services")
async def admin_list_services(
    db: Session = Depends(get_db),
    current_admin: Any = Depends(get_current_admin),
):
    services = db.query(RepairService).order_by(RepairService.created_at.desc()).all()
    return envelope(data=dump_list(RepairServiceResponse, services))


@router.post("/admin/services", status_code=201)
async def admin_create_service(
    body: RepairServiceCreate,
    db: Session = Depends(get_db),
    current_admin: Any = Depends(get_current_admin),
):
    service = RepairService(**body.model_dump())
    db.add(service)
    db.commit()
    db.refresh(service)
    return envelope(data=dump(RepairServiceResponse.model_validate(service)), message="Service created successfully")


@router.put("/admin/services/{service_id}")
async def admin_update_service(
    service_id: int,
    body: RepairServiceUpdate,
    db: Session = Depends(get_db),
    current_admin: Any = Depends(get_current_admin),
):
    service = db.query(RepairService).filter(RepairService.id == service_id).first()
    if service is None:
        raise NotFound("Service not found")
    for field, value in body.model_dump(exclude_unset=True).items():
        setattr(service, field, value)
    db.commit()
    db.refresh(service)
    return envelope(data=dump(RepairServiceResponse.model_validate(service)), message="Service updated successfully")


@router.delete("/admin/services/{service_id}")
async def admin_delete_service(
    service_id: int,
    db: Session = Depends(get_db),
    current_admin: Any = Depends(get_current_admin),
):
    service = db.query(RepairService).filter(RepairService.id == service_id).first()
    if service is None:
        raise NotFound("Service not found")
    # Booked line items keep pointing at the service, so it is only retired.
    service.is_active = False
    db.commit()
    return envelope(message="Service deleted successfully")


@router.get("/admin/time-slots")
async def admin_list_time_slots(
    db: Session = Depends(get_db),
    current_admin: Any = Depends(get_current_admin),
):
    """Every slot, retired ones included."""
    slots = db.query(TimeSlot).order_by(TimeSlot.start_time).all()
    return envelope(data=dump_list(TimeSlotResponse, slots))


@router.post("/admin/time-slots", status_code=201)
async def admin_create_time_slot(
    body: TimeSlotCreate,
    db: Session = Depends(get_db),
    current_admin: Any = Depends(get_current_admin),
):
    if body.end_time <= body.start_time:
        raise ValidationError(errors=[{"field": "endTime", "message": "End time must be after start time"}])
    slot = TimeSlot(start_time=body.start_time, end_time=body.end_time)
    db.add(slot)
    db.commit()
    db.refresh(slot)
    return envelope(data=dump(TimeSlotResponse.model_validate(slot)), message="Time slot created successfully")


@router.delete("/admin/time-slots/{slot_id}")
async def admin_delete_time_slot(
    slot_id: int,
    db: Session = Depends(get_db),
    current_admin: Any = Depends(get_current_admin),
):
    slot = db.query(TimeSlot).filter(TimeSlot.id == slot_id).first()
    if slot is None:
        raise NotFound("Time slot not found")
    slot.is_active = False
    db.commit()
    return envelope(message="Time slot deleted successfully")


@router.get("/admin/mechanic-charge")
async def admin_get_mechanic_charge(
    db: Session = Depends(get_db),
    current_admin: Any = Depends(get_current_admin),
):
    charge = db.query(MechanicCharge).filter(
        MechanicCharge.is_active == True
    ).order_by(MechanicCharge.id.desc()).first()
    return envelope(data={
        "amount": float(pricing.active_mechanic_charge(db)),
        "updatedAt": charge.created_at.isoformat() if charge else None,
    })


@router.put("/admin/mechanic-charge")
async def admin_update_mechanic_charge(
    body: MechanicChargeUpdate,
    db: Session = Depends(get_db),
    current_admin: Any = Depends(get_current_admin),
):
    db.query(MechanicCharge).filter(MechanicCharge.is_active == True).update(
        {MechanicCharge.is_active: False}, synchronize_session=False
    )
    db.add(MechanicCharge(amount=body.amount, is_active=True))
    db.commit()
    logger.info("Mechanic charge set to %s by admin %s", body.amount, current_admin.id)
    return envelope(data={"amount": float(pricing.active_mechanic_charge(db))}, message="Mechanic charge updated")

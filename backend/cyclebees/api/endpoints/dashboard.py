from datetime import timedelta
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from cyclebees.api.endpoints.auth import get_current_admin
from cyclebees.core.database import get_db
from cyclebees.core.exceptions import NotFound
from cyclebees.core.timeutils import utcnow
from cyclebees.models.rental import Bicycle, RentalRequest
from cyclebees.models.repair import RepairRequest, RepairRequestService, RepairService
from cyclebees.models.request_status import RequestStatusEnum, RequestTypeEnum
from cyclebees.models.user import User
from cyclebees.schemas.auth import UserResponse
from cyclebees.schemas.common import dump, dump_list, envelope, paginate
from cyclebees.services import lifecycle

router = APIRouter()


def _expire_all(db: Session) -> None:
    lifecycle.expire_stale(db, RequestTypeEnum.REPAIR)
    lifecycle.expire_stale(db, RequestTypeEnum.RENTAL)


def _completed_revenue(db: Session, model, *filters) -> float:
    total = db.query(func.coalesce(func.sum(model.net_amount), 0)).filter(
        model.status == RequestStatusEnum.COMPLETED, *filters
    ).scalar()
    return float(total or 0)


def _status_breakdown(db: Session, model, since):
    rows = db.query(
        model.status,
        func.count(model.id).label("count"),
        func.sum(model.net_amount).label("amount"),
    ).filter(model.created_at >= since).group_by(model.status).all()
    return [
        {"status": getattr(row.status, "value", row.status), "count": row.count, "totalAmount": float(row.amount or 0)}
        for row in rows
    ]


def _daily(db: Session, model, since):
    day = func.date(model.created_at)
    rows = db.query(
        day.label("day"),
        func.count(model.id).label("count"),
        func.sum(model.net_amount).label("amount"),
    ).filter(model.created_at >= since).group_by(day).order_by(day).all()
    return [{"date": str(row.day), "count": row.count, "totalAmount": float(row.amount or 0)} for row in rows]


@router.get("/overview")
async def get_overview(
    db: Session = Depends(get_db),
    current_admin: Any = Depends(get_current_admin),
):
    _expire_all(db)
    today = utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
    today_requests = (
        db.query(RepairRequest).filter(RepairRequest.created_at >= today).count()
        + db.query(RentalRequest).filter(RentalRequest.created_at >= today).count()
    )
    data = {
        "totalUsers": db.query(User).count(),
        "totalRepairRequests": db.query(RepairRequest).count(),
        "totalRentalRequests": db.query(RentalRequest).count(),
        "pendingRepairRequests": db.query(RepairRequest).filter(RepairRequest.status == RequestStatusEnum.PENDING).count(),
        "pendingRentalRequests": db.query(RentalRequest).filter(RentalRequest.status == RequestStatusEnum.PENDING).count(),
        "totalRevenue": _completed_revenue(db, RepairRequest) + _completed_revenue(db, RentalRequest),
        "todayRequests": today_requests,
    }
    return envelope(data=data)


@router.get("/users")
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    current_admin: Any = Depends(get_current_admin),
):
    query = db.query(User)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(User.full_name.ilike(pattern), User.phone.ilike(pattern), User.email.ilike(pattern)))
    users, pagination = paginate(query.order_by(User.created_at.desc()), page, limit)
    return envelope(data={"users": dump_list(UserResponse, users), "pagination": pagination})


@router.get("/users/{user_id}")
async def get_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_admin: Any = Depends(get_current_admin),
):
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise NotFound("User not found")
    lifecycle.expire_stale(db, RequestTypeEnum.REPAIR, user_id=user.id)
    lifecycle.expire_stale(db, RequestTypeEnum.RENTAL, user_id=user.id)

    repair_count = db.query(RepairRequest).filter(RepairRequest.user_id == user.id).count()
    rental_count = db.query(RentalRequest).filter(RentalRequest.user_id == user.id).count()
    completed_repairs = db.query(RepairRequest).filter(
        RepairRequest.user_id == user.id, RepairRequest.status == RequestStatusEnum.COMPLETED
    ).count()
    completed_rentals = db.query(RentalRequest).filter(
        RentalRequest.user_id == user.id, RentalRequest.status == RequestStatusEnum.COMPLETED
    ).count()
    total_spent = (
        _completed_revenue(db, RepairRequest, RepairRequest.user_id == user.id)
        + _completed_revenue(db, RentalRequest, RentalRequest.user_id == user.id)
    )
    return envelope(data={
        "user": dump(UserResponse.model_validate(user)),
        "stats": {
            "totalRepairRequests": repair_count,
            "totalRentalRequests": rental_count,
            "completedRepairRequests": completed_repairs,
            "completedRentalRequests": completed_rentals,
            "totalSpent": total_spent,
        },
    })


@router.get("/analytics/repair")
async def repair_analytics(
    period: int = Query(30, ge=1, le=365),
    db: Session = Depends(get_db),
    current_admin: Any = Depends(get_current_admin),
):
    lifecycle.expire_stale(db, RequestTypeEnum.REPAIR)
    now = utcnow()
    since = now - timedelta(days=period)
    top_services = db.query(
        RepairService.name,
        func.count(RepairRequestService.id).label("count"),
        func.sum(RepairRequestService.price - RepairRequestService.discount_amount).label("revenue"),
    ).join(
        RepairService, RepairRequestService.repair_service_id == RepairService.id
    ).join(
        RepairRequest, RepairRequestService.repair_request_id == RepairRequest.id
    ).filter(
        RepairRequest.created_at >= since
    ).group_by(RepairService.name).order_by(func.count(RepairRequestService.id).desc()).limit(5).all()

    return envelope(data={
        "period": period,
        "statusStats": _status_breakdown(db, RepairRequest, since),
        "dailyStats": _daily(db, RepairRequest, now - timedelta(days=7)),
        "topServices": [
            {"name": row.name, "count": row.count, "totalRevenue": float(row.revenue or 0)} for row in top_services
        ],
    })


@router.get("/analytics/rental")
async def rental_analytics(
    period: int = Query(30, ge=1, le=365),
    db: Session = Depends(get_db),
    current_admin: Any = Depends(get_current_admin),
):
    lifecycle.expire_stale(db, RequestTypeEnum.RENTAL)
    now = utcnow()
    since = now - timedelta(days=period)
    top_bicycles = db.query(
        Bicycle.name,
        func.count(RentalRequest.id).label("count"),
        func.sum(RentalRequest.net_amount).label("revenue"),
    ).join(
        Bicycle, RentalRequest.bicycle_id == Bicycle.id
    ).filter(
        RentalRequest.created_at >= since
    ).group_by(Bicycle.name).order_by(func.count(RentalRequest.id).desc()).limit(5).all()
    durations = db.query(
        RentalRequest.duration_type,
        func.count(RentalRequest.id).label("count"),
    ).filter(RentalRequest.created_at >= since).group_by(RentalRequest.duration_type).all()

    return envelope(data={
        "period": period,
        "statusStats": _status_breakdown(db, RentalRequest, since),
        "dailyStats": _daily(db, RentalRequest, now - timedelta(days=7)),
        "topBicycles": [
            {"name": row.name, "count": row.count, "totalRevenue": float(row.revenue or 0)} for row in top_bicycles
        ],
        "durationStats": [
            {"durationType": getattr(row.duration_type, "value", row.duration_type), "count": row.count}
            for row in durations
        ],
    })


@router.get("/recent-activity")
async def recent_activity(
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
    current_admin: Any = Depends(get_current_admin),
):
    _expire_all(db)
    repairs = db.query(RepairRequest).order_by(RepairRequest.created_at.desc()).limit(limit).all()
    rentals = db.query(RentalRequest).order_by(RentalRequest.created_at.desc()).limit(limit).all()
    activity = [
        {
            "type": RequestTypeEnum.REPAIR.value,
            "id": r.id,
            "status": r.status.value,
            "userName": r.user.full_name if r.user else None,
            "amount": float(r.net_amount),
            "createdAt": r.created_at.isoformat(),
        }
        for r in repairs
    ] + [
        {
            "type": RequestTypeEnum.RENTAL.value,
            "id": r.id,
            "status": r.status.value,
            "userName": r.user.full_name if r.user else None,
            "amount": float(r.net_amount),
            "createdAt": r.created_at.isoformat(),
        }
        for r in rentals
    ]
    activity.sort(key=lambda item: item["createdAt"], reverse=True)
    return envelope(data=activity[:limit])

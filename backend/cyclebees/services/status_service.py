from typing import Optional

from sqlalchemy.orm import Session

from cyclebees.core.exceptions import Forbidden, NotFound
from cyclebees.core.logging_config import get_logger
from cyclebees.models.request_status import RequestStatusEnum, RequestTypeEnum
from cyclebees.services import lifecycle, notification_service

logger = get_logger("status_service")

ADMIN_ROLE = "admin"


def update_status(
    db: Session,
    request_type: RequestTypeEnum,
    request_id: int,
    actor_role: Optional[str],
    new_status: RequestStatusEnum,
    rejection_note: Optional[str] = None,
):
    """
    Move a booking to ``new_status`` on behalf of an admin.

    Expiry is applied first so an overdue pending request cannot be
    approved. The owner gets a notification row in the same transaction;
    the SMS goes out only after commit.
    """
    if actor_role != ADMIN_ROLE:
        raise Forbidden("Admin access required")

    request_type = RequestTypeEnum(request_type)
    model = lifecycle.MODELS[request_type]
    request = db.query(model).filter(model.id == request_id).first()
    if request is None:
        raise NotFound(f"{request_type.value.capitalize()} request not found")

    if lifecycle.apply_expiry(db, request):
        notification_service.record_status_change(db, request, request_type.value)
        db.commit()

    new_status = RequestStatusEnum(new_status)
    note = rejection_note if new_status == RequestStatusEnum.REJECTED else None
    try:
        lifecycle.transition(db, request, new_status, note)
        notification_service.record_status_change(db, request, request_type.value)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(request)
    notification_service.deliver_sms(request, request_type.value)
    return request

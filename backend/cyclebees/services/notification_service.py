"""
Customer-facing notifications for booking status changes.

Rows are written in the same transaction as the status change; the SMS is
only attempted after the caller has committed.
"""
from typing import List, Optional

from sqlalchemy.orm import Session

from cyclebees.core.exceptions import NotFound
from cyclebees.core.logging_config import get_logger
from cyclebees.core.timeutils import utcnow
from cyclebees.models.settings import RequestNotification
from cyclebees.services import sms_service

logger = get_logger("notification_service")

MESSAGES = {
    "approved": "Your {kind} request #{id} has been approved.",
    "rejected": "Your {kind} request #{id} was rejected.",
    "expired": "Your {kind} request #{id} expired before it could be approved.",
    "active": "Work on your repair request #{id} has started.",
    "waiting_payment": "Your rental request #{id} is waiting for payment.",
    "arranging_delivery": "We are arranging delivery for rental request #{id}.",
    "active_rental": "Your rental #{id} is now active. Enjoy the ride!",
    "completed": "Your {kind} request #{id} is completed. Thank you!",
}


def build_message(request_type: str, request_id: int, status: str, rejection_note: Optional[str] = None) -> str:
    template = MESSAGES.get(status, "Your {kind} request #{id} is now " + status + ".")
    text = template.format(kind=request_type, id=request_id)
    if status == "rejected" and rejection_note:
        text += f" Reason: {rejection_note}"
    return text


def record_status_change(db: Session, request, request_type: str) -> RequestNotification:
    status = getattr(request.status, "value", request.status)
    notification = RequestNotification(
        user_id=request.user_id,
        request_type=request_type,
        request_id=request.id,
        status=status,
        message=build_message(request_type, request.id, status, request.rejection_note),
        created_at=utcnow(),
    )
    db.add(notification)
    db.flush()
    return notification


def deliver_sms(request, request_type: str) -> None:
    phone = request.contact_number or (request.user.phone if request.user else None)
    if not phone:
        return
    status = getattr(request.status, "value", request.status)
    sms_service.send_status_sms(phone, request_type, request.id, status, request.rejection_note)


def list_for_user(db: Session, user_id: int, unread_only: bool = False, limit: int = 50) -> List[RequestNotification]:
    query = db.query(RequestNotification).filter(RequestNotification.user_id == user_id)
    if unread_only:
        query = query.filter(RequestNotification.is_read == False)
    return query.order_by(RequestNotification.created_at.desc(), RequestNotification.id.desc()).limit(limit).all()


def unread_count(db: Session, user_id: int) -> int:
    return db.query(RequestNotification).filter(
        RequestNotification.user_id == user_id,
        RequestNotification.is_read == False,
    ).count()


def mark_read(db: Session, user_id: int, notification_id: int) -> RequestNotification:
    notification = db.query(RequestNotification).filter(
        RequestNotification.id == notification_id,
        RequestNotification.user_id == user_id,
    ).first()
    if notification is None:
        raise NotFound("Notification not found")
    notification.is_read = True
    return notification


def mark_all_read(db: Session, user_id: int) -> int:
    count = db.query(RequestNotification).filter(
        RequestNotification.user_id == user_id,
        RequestNotification.is_read == False,
    ).update({RequestNotification.is_read: True}, synchronize_session=False)
    logger.info("Marked %d notifications read for user %s", count, user_id)
    return count

from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from cyclebees.api.endpoints.auth import get_current_user
from cyclebees.core.database import get_db
from cyclebees.schemas.common import dump, dump_list, envelope
from cyclebees.schemas.settings import NotificationResponse
from cyclebees.services import notification_service

router = APIRouter()


@router.get("")
async def list_notifications(
    unread_only: bool = Query(False, alias="unreadOnly"),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user: Any = Depends(get_current_user),
):
    notifications = notification_service.list_for_user(db, current_user.id, unread_only, limit)
    return envelope(data={
        "notifications": dump_list(NotificationResponse, notifications),
        "unreadCount": notification_service.unread_count(db, current_user.id),
    })


@router.post("/read-all")
async def mark_all_read(
    db: Session = Depends(get_db),
    current_user: Any = Depends(get_current_user),
):
    count = notification_service.mark_all_read(db, current_user.id)
    return envelope(data={"updated": count}, message="All notifications marked as read")


@router.post("/{notification_id}/read")
async def mark_read(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: Any = Depends(get_current_user),
):
    notification = notification_service.mark_read(db, current_user.id, notification_id)
    db.commit()
    db.refresh(notification)
    return envelope(data=dump(NotificationResponse.model_validate(notification)))

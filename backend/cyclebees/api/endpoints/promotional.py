from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import or_
from sqlalchemy.orm import Session

from cyclebees.api.endpoints.auth import get_current_admin
from cyclebees.core.database import get_db
from cyclebees.core.exceptions import NotFound, ValidationError
from cyclebees.core.logging_config import get_logger
from cyclebees.core.timeutils import to_naive_utc, utcnow
from cyclebees.models.settings import PromotionalCard
from cyclebees.schemas.common import dump, dump_list, envelope, field_errors, paginate
from cyclebees.schemas.settings import PromotionalCardFields, PromotionalCardResponse
from cyclebees.services import upload_service

logger = get_logger("promotional")

router = APIRouter()


def _get_card(db: Session, card_id: int) -> PromotionalCard:
    card = db.query(PromotionalCard).filter(PromotionalCard.id == card_id).first()
    if card is None:
        raise NotFound("Promotional card not found")
    return card


def _card_fields(title, description, external_link, display_order, starts_at, ends_at, is_active) -> dict:
    raw = {
        "title": title,
        "description": description,
        "external_link": external_link,
        "display_order": display_order,
        "starts_at": starts_at or None,
        "ends_at": ends_at or None,
        "is_active": is_active,
    }
    try:
        fields = PromotionalCardFields.model_validate(raw)
    except PydanticValidationError as e:
        raise ValidationError(errors=field_errors(e.errors()))
    values = fields.model_dump()
    for key in ("starts_at", "ends_at"):
        if values[key] is not None:
            values[key] = to_naive_utc(values[key])
    return values


@router.get("/cards")
async def list_active_cards(db: Session = Depends(get_db)):
    """Cards that are switched on and inside their display window."""
    now = utcnow()
    cards = db.query(PromotionalCard).filter(
        PromotionalCard.is_active == True,
        or_(PromotionalCard.starts_at.is_(None), PromotionalCard.starts_at <= now),
        or_(PromotionalCard.ends_at.is_(None), PromotionalCard.ends_at > now),
    ).order_by(PromotionalCard.display_order, PromotionalCard.created_at.desc()).all()
    return envelope(data=dump_list(PromotionalCardResponse, cards))


@router.get("/admin")
async def admin_list_cards(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    current_admin: Any = Depends(get_current_admin),
):
    query = db.query(PromotionalCard)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(PromotionalCard.title.ilike(pattern), PromotionalCard.description.ilike(pattern)))
    cards, pagination = paginate(query.order_by(PromotionalCard.display_order, PromotionalCard.id), page, limit)
    return envelope(data={"cards": dump_list(PromotionalCardResponse, cards), "pagination": pagination})


@router.get("/admin/{card_id}")
async def admin_get_card(
    card_id: int,
    db: Session = Depends(get_db),
    current_admin: Any = Depends(get_current_admin),
):
    return envelope(data=dump(PromotionalCardResponse.model_validate(_get_card(db, card_id))))


@router.post("/admin", status_code=201)
async def admin_create_card(
    title: str = Form(...),
    description: Optional[str] = Form(None),
    external_link: Optional[str] = Form(None, alias="externalLink"),
    display_order: int = Form(0, alias="displayOrder"),
    starts_at: Optional[datetime] = Form(None, alias="startsAt"),
    ends_at: Optional[datetime] = Form(None, alias="endsAt"),
    is_active: bool = Form(True, alias="isActive"),
    image: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    current_admin: Any = Depends(get_current_admin),
):
    values = _card_fields(title, description, external_link, display_order, starts_at, ends_at, is_active)
    stored = None
    if image is not None and image.filename:
        stored = await upload_service.save_image(image, upload_service.PROMOTIONAL, "promo")
    card = PromotionalCard(**values, image_url=stored.url if stored else None)
    db.add(card)
    try:
        db.commit()
    except Exception:
        db.rollback()
        if stored:
            upload_service.remove_files([stored])
        raise
    db.refresh(card)
    logger.info("Promotional card %s created by admin %s", card.id, current_admin.id)
    return envelope(data=dump(PromotionalCardResponse.model_validate(card)), message="Promotional card created successfully")


@router.put("/admin/{card_id}")
async def admin_update_card(
    card_id: int,
    title: str = Form(...),
    description: Optional[str] = Form(None),
    external_link: Optional[str] = Form(None, alias="externalLink"),
    display_order: int = Form(0, alias="displayOrder"),
    starts_at: Optional[datetime] = Form(None, alias="startsAt"),
    ends_at: Optional[datetime] = Form(None, alias="endsAt"),
    is_active: bool = Form(True, alias="isActive"),
    image: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    current_admin: Any = Depends(get_current_admin),
):
    card = _get_card(db, card_id)
    values = _card_fields(title, description, external_link, display_order, starts_at, ends_at, is_active)
    previous_image = None
    if image is not None and image.filename:
        stored = await upload_service.save_image(image, upload_service.PROMOTIONAL, "promo")
        previous_image = card.image_url
        values["image_url"] = stored.url
    for field, value in values.items():
        setattr(card, field, value)
    db.commit()
    upload_service.delete_url(previous_image)
    db.refresh(card)
    return envelope(data=dump(PromotionalCardResponse.model_validate(card)), message="Promotional card updated successfully")


@router.delete("/admin/{card_id}")
async def admin_delete_card(
    card_id: int,
    db: Session = Depends(get_db),
    current_admin: Any = Depends(get_current_admin),
):
    card = _get_card(db, card_id)
    image_url = card.image_url
    db.delete(card)
    db.commit()
    upload_service.delete_url(image_url)
    return envelope(message="Promotional card deleted successfully")

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from cyclebees.api.endpoints.auth import get_current_admin
from cyclebees.core.database import get_db
from cyclebees.core.logging_config import get_logger
from cyclebees.models.settings import ContactSetting
from cyclebees.schemas.common import dump, envelope
from cyclebees.schemas.settings import ContactSettingResponse, ContactSettingUpdate

logger = get_logger("contact")

router = APIRouter()


def _active_setting(db: Session):
    return db.query(ContactSetting).filter(ContactSetting.is_active == True).order_by(ContactSetting.id.desc()).first()


@router.get("/settings")
async def get_contact_settings(db: Session = Depends(get_db)):
    setting = _active_setting(db)
    if setting is None:
        return envelope(data=None, message="No contact method configured")
    return envelope(data={"type": setting.type, "value": setting.value})


@router.get("/admin/contact-settings")
async def admin_get_contact_settings(
    db: Session = Depends(get_db),
    current_admin: Any = Depends(get_current_admin),
):
    setting = _active_setting(db)
    return envelope(data=dump(ContactSettingResponse.model_validate(setting)) if setting else None)


@router.post("/admin/contact-settings")
async def admin_replace_contact_settings(
    body: ContactSettingUpdate,
    db: Session = Depends(get_db),
    current_admin: Any = Depends(get_current_admin),
):
    """Replace the active contact method; older rows are kept inactive."""
    db.query(ContactSetting).filter(ContactSetting.is_active == True).update(
        {ContactSetting.is_active: False}, synchronize_session=False
    )
    setting = ContactSetting(type=body.type, value=body.value, is_active=True)
    db.add(setting)
    db.commit()
    db.refresh(setting)
    logger.info("Contact setting replaced with %s by admin %s", setting.type, current_admin.id)
    return envelope(data=dump(ContactSettingResponse.model_validate(setting)), message="Contact settings updated successfully")

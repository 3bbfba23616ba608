import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_admin_user
from app.api.errors import api_error
from app.db.session import get_db
from app.models.user import User
from app.schemas.setting import SettingUpdate, SiteSettings
from app.utils.settings import get_site_settings, is_site_setting_key, parse_base_url, upsert_setting

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/settings", tags=["Admin - Settings"])


def _validation_error(message: str):
    return api_error(status.HTTP_400_BAD_REQUEST, "VALIDATION_ERROR", message)


@router.get("/", response_model=SiteSettings)
def read_settings(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    return SiteSettings(**get_site_settings(db))


@router.put("/", response_model=SiteSettings)
def write_setting(
    data: SettingUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    if not is_site_setting_key(data.key):
        raise api_error(status.HTTP_400_BAD_REQUEST, "INVALID_SETTING_KEY", "Unsupported setting key")

    value = data.value.strip() if data.value is not None else None

    if data.key == "site_title":
        if not value:
            raise _validation_error("Site title cannot be empty")
    elif data.key == "site_base_url" and value:
        value = parse_base_url(value)
        if value is None:
            raise _validation_error("Site base URL must be a valid http(s) URL")
    elif value == "":
        value = None

    upsert_setting(db, data.key, value)
    logger.info("Setting %s updated by user %d", data.key, current_user.id)
    return SiteSettings(**get_site_settings(db))

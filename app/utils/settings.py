from typing import Dict, Optional
from urllib.parse import urlparse

from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.setting import Setting

SITE_SETTING_KEYS = ("site_title", "site_description", "default_og_image", "site_base_url")


def is_site_setting_key(value: str) -> bool:
    return value in SITE_SETTING_KEYS


def get_all_settings(db: Session) -> Dict[str, Optional[str]]:
    return {row.k: row.v for row in db.query(Setting).all() if row.k}


def get_site_settings(db: Session) -> Dict[str, Optional[str]]:
    stored = get_all_settings(db)
    return {key: stored.get(key) for key in SITE_SETTING_KEYS}


def upsert_setting(db: Session, key: str, value: Optional[str]) -> None:
    """Store a setting; None deletes it. Commits."""
    row = db.query(Setting).filter(Setting.k == key).first()
    if value is None:
        if row:
            db.delete(row)
    elif row:
        row.v = value
    else:
        db.add(Setting(k=key, v=value))
    db.commit()


def parse_base_url(value: str) -> Optional[str]:
    """Normalise a site base URL, adding https:// when no scheme is given."""
    trimmed = value.strip()
    if not trimmed:
        return None

    candidate = trimmed if trimmed.startswith(("http://", "https://")) else f"https://{trimmed}"
    parsed = urlparse(candidate)
    if not parsed.netloc or " " in parsed.netloc:
        return None
    return candidate


def get_site_base_url(db: Session) -> str:
    stored = db.query(Setting.v).filter(Setting.k == "site_base_url").scalar()
    if stored:
        parsed = parse_base_url(stored)
        if parsed:
            return parsed
    return settings.SITE_BASE_URL

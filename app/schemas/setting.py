from typing import Optional
from pydantic import BaseModel


class SiteSettings(BaseModel):
    site_title: Optional[str] = None
    site_description: Optional[str] = None
    default_og_image: Optional[str] = None
    site_base_url: Optional[str] = None


class SettingUpdate(BaseModel):
    key: str
    value: Optional[str] = None

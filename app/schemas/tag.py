from typing import Optional
from pydantic import BaseModel, Field
from datetime import datetime

SLUG_REGEX = r"^[a-z0-9]+(?:-[a-z0-9]+)*$"


class TagBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=64)


class TagCreate(TagBase):
    slug: Optional[str] = Field(None, max_length=191, pattern=SLUG_REGEX)


class TagUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=64)
    slug: Optional[str] = Field(None, max_length=191, pattern=SLUG_REGEX)


# Compact tag for nested post responses
class TagSummary(BaseModel):
    id: int
    name: str
    slug: str

    class Config:
        from_attributes = True


class Tag(TagSummary):
    post_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

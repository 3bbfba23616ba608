from typing import Optional, List, Literal
from pydantic import BaseModel, Field, model_validator
from pydantic.alias_generators import to_camel
from datetime import datetime

from app.models.post import PostStatus
from app.schemas.tag import TagSummary
from app.schemas.user import UserSummary

BulkPostAction = Literal["delete", "publish", "draft", "archive"]


def _has_text(value: Optional[str]) -> bool:
    return bool(value and value.strip())


# ---------------------------------------------------------------------------
# Admin input
# ---------------------------------------------------------------------------


class PostBase(BaseModel):
    summary: Optional[str] = Field(None, max_length=1024)
    content_md: Optional[str] = None
    content_html: Optional[str] = None
    cover_image_url: Optional[str] = Field(None, max_length=512)
    is_featured: bool = False
    allow_comments: bool = True
    published_at: Optional[datetime] = None
    tag_ids: List[int] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list, max_length=20)


class PostCreate(PostBase):
    title: str = Field(..., min_length=1, max_length=255)
    slug: Optional[str] = Field(None, max_length=191)
    status: PostStatus = PostStatus.draft

    @model_validator(mode="after")
    def check_publishable(self):
        if not self.title.strip():
            raise ValueError("Title cannot be empty")
        if self.status == PostStatus.published and not (
            _has_text(self.content_md) or _has_text(self.content_html)
        ):
            raise ValueError("Content is required when publishing")
        return self


# Partial update: every field is optional
class PostUpdate(BaseModel):
    title: Optional[str] = Field(None, max_length=255)
    slug: Optional[str] = Field(None, max_length=191)
    summary: Optional[str] = Field(None, max_length=1024)
    content_md: Optional[str] = None
    content_html: Optional[str] = None
    cover_image_url: Optional[str] = Field(None, max_length=512)
    status: Optional[PostStatus] = None
    is_featured: Optional[bool] = None
    allow_comments: Optional[bool] = None
    published_at: Optional[datetime] = None
    tag_ids: Optional[List[int]] = None
    tags: Optional[List[str]] = Field(None, max_length=20)


class BulkPostRequest(BaseModel):
    action: BulkPostAction
    ids: List[int]


class BulkPostError(BaseModel):
    id: int
    error: str


class BulkPostResponse(BaseModel):
    success: bool
    success_count: int
    errors: List[BulkPostError] = []


# ---------------------------------------------------------------------------
# Admin output
# ---------------------------------------------------------------------------


class PostSummary(BaseModel):
    id: int
    title: str
    slug: str
    status: str
    summary: Optional[str] = None
    cover_image_url: Optional[str] = None
    is_featured: bool
    allow_comments: bool
    view_count: int = 0
    author: Optional[UserSummary] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    published_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class Post(PostSummary):
    content_md: Optional[str] = None
    content_html: Optional[str] = None
    tags: List[TagSummary] = []


class PreviewTokenResponse(BaseModel):
    token: str
    preview_url: str
    expires_at: str
    expires_in_ms: int
    ttl_ms: int

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class PostRevisionSummary(BaseModel):
    id: int
    post_id: int
    revision_number: int
    title: Optional[str] = None
    status: Optional[str] = None
    diff_summary: Optional[str] = None
    editor: Optional[UserSummary] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PostRevision(PostRevisionSummary):
    slug: Optional[str] = None
    summary: Optional[str] = None
    content_md: Optional[str] = None
    content_html: Optional[str] = None
    cover_image_url: Optional[str] = None
    is_featured: Optional[bool] = None
    allow_comments: Optional[bool] = None
    published_at: Optional[datetime] = None


class PostRevisionList(BaseModel):
    revisions: List[PostRevisionSummary]
    count: int


# ---------------------------------------------------------------------------
# Public site
# ---------------------------------------------------------------------------


class PublishedPostCard(BaseModel):
    id: int
    slug: str
    title: str
    summary: Optional[str] = None
    meta_description: Optional[str] = None
    cover_image_url: Optional[str] = None
    is_featured: bool
    published_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    tags: List[TagSummary] = []


class PublishedPost(PublishedPostCard):
    content_md: Optional[str] = None
    content_html: str = ""
    canonical_url: str
    view_count: int = 0
    created_at: Optional[datetime] = None


class PreviewPost(PublishedPost):
    status: str
    preview_expires_at: str
    preview_expires_in_ms: int


class TagPage(BaseModel):
    tag: TagSummary
    posts: List[PublishedPostCard]


class RelatedPost(PublishedPostCard):
    shared_tag_count: int = 0


class ArchivePost(BaseModel):
    id: int
    slug: str
    title: str
    date: datetime


class ArchiveMonth(BaseModel):
    month: int
    posts: List[ArchivePost]


class ArchiveYear(BaseModel):
    year: int
    months: List[ArchiveMonth]


class ViewCountResponse(BaseModel):
    id: int
    view_count: int



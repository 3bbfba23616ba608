from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.api.errors import api_error, tag_not_found
from app.db.session import get_db
from app.models.post import Post
from app.models.tag import Tag, post_tags
from app.schemas.common import PaginatedResponse
from app.schemas.post import ArchiveYear, PublishedPostCard, RelatedPost, TagPage
from app.schemas.setting import SiteSettings
from app.schemas.tag import TagSummary
from app.utils.posts import (
    RELATED_POSTS_DEFAULT_LIMIT,
    RELATED_POSTS_MAX_LIMIT,
    group_posts_by_year_and_month,
    list_archive_posts,
    list_published_posts,
    list_related_posts,
    published_condition,
    to_post_card,
    to_related_post,
)
from app.utils.settings import get_site_settings

router = APIRouter(prefix="/site", tags=["Site"])


def _page(posts, total: int, page: int, limit: int) -> PaginatedResponse[PublishedPostCard]:
    return PaginatedResponse(
        data=[to_post_card(p) for p in posts],
        total=total,
        page=page,
        limit=limit,
        total_pages=-(-total // limit) if total else 0,
    )


@router.get("/posts", response_model=PaginatedResponse[PublishedPostCard])
def list_posts(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
):
    posts, total = list_published_posts(db, page=page, limit=limit)
    return _page(posts, total, page, limit)


@router.get("/posts/{id}/related", response_model=List[RelatedPost])
def related_posts(
    id: int,
    limit: int = Query(RELATED_POSTS_DEFAULT_LIMIT, ge=1, le=RELATED_POSTS_MAX_LIMIT),
    db: Session = Depends(get_db),
):
    """Posts sharing the most tags with this one, else the latest posts."""
    if id <= 0:
        raise api_error(status.HTTP_400_BAD_REQUEST, "INVALID_IDENTIFIER", "Post id is invalid")
    return [to_related_post(post, count) for post, count in list_related_posts(db, id, limit)]


@router.get("/archive", response_model=List[ArchiveYear])
def archive(db: Session = Depends(get_db)):
    return group_posts_by_year_and_month(list_archive_posts(db))


@router.get("/search", response_model=PaginatedResponse[PublishedPostCard])
def search_posts(
    q: str = Query(..., min_length=1, description="Search query"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
):
    posts, total = list_published_posts(db, page=page, limit=limit, search=q)
    return _page(posts, total, page, limit)


@router.get("/tags", response_model=List[TagSummary])
def list_tags(db: Session = Depends(get_db)):
    """Tags attached to at least one published post."""
    return (
        db.query(Tag)
        .join(post_tags, post_tags.c.tag_id == Tag.id)
        .join(Post, Post.id == post_tags.c.post_id)
        .filter(published_condition())
        .group_by(Tag.id)
        .having(func.count(Post.id) > 0)
        .order_by(Tag.name.asc())
        .all()
    )


@router.get("/tags/{slug}", response_model=TagPage)
def tag_page(
    slug: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
):
    tag = db.query(Tag).filter(Tag.slug == slug).first()
    if not tag:
        raise tag_not_found()
    posts, _ = list_published_posts(db, page=page, limit=limit, tag_id=tag.id)
    return TagPage(tag=TagSummary.model_validate(tag), posts=[to_post_card(p) for p in posts])


@router.get("/settings", response_model=SiteSettings)
def site_settings(db: Session = Depends(get_db)):
    return SiteSettings(**get_site_settings(db))

import re
from datetime import datetime, timezone
from html import unescape
from typing import Dict, List, Optional, Tuple

from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session, selectinload

from app.core.config import settings
from app.models.post import Post, PostStatus
from app.models.tag import Tag, post_tags
from app.utils.settings import get_site_base_url
from app.schemas.post import (
    ArchiveMonth,
    ArchivePost,
    ArchiveYear,
    PublishedPost,
    PublishedPostCard,
    RelatedPost,
)
from app.schemas.tag import TagSummary

META_DESCRIPTION_MAX_LENGTH = 160
RELATED_POSTS_DEFAULT_LIMIT = 5
RELATED_POSTS_MAX_LIMIT = 10

_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")


def published_condition():
    """SQL condition for posts visible on the public site."""
    now = datetime.now(timezone.utc)
    return and_(
        Post.status == PostStatus.published.value,
        or_(Post.published_at == None, Post.published_at <= now),  # noqa: E711
    )


def published_query(db: Session):
    return (
        db.query(Post)
        .options(selectinload(Post.tags))
        .filter(published_condition())
    )


def get_published_post_by_slug(db: Session, slug: str) -> Optional[Post]:
    return published_query(db).filter(Post.slug == slug).first()


def list_published_posts(
    db: Session,
    page: int = 1,
    limit: int = 20,
    search: Optional[str] = None,
    tag_id: Optional[int] = None,
) -> Tuple[List[Post], int]:
    query = published_query(db)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(
            or_(Post.title.ilike(like), Post.summary.ilike(like), Post.content_md.ilike(like))
        )
    if tag_id is not None:
        query = query.filter(Post.tags.any(Tag.id == tag_id))

    total = query.count()
    posts = (
        query.order_by(func.coalesce(Post.published_at, Post.created_at).desc(), Post.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return posts, total


def list_related_posts(
    db: Session, post_id: int, limit: int = RELATED_POSTS_DEFAULT_LIMIT
) -> List[Tuple[Post, int]]:
    """
    Published posts ranked by how many tags they share with post_id.

    Ties go to the newer post. When nothing overlaps, or post_id is not itself
    published, the latest published posts are returned with a count of 0.
    """
    if post_id <= 0:
        return []
    limit = max(1, min(limit, RELATED_POSTS_MAX_LIMIT))
    post_date = func.coalesce(Post.published_at, Post.created_at)

    tag_ids = [
        row.tag_id
        for row in db.query(post_tags.c.tag_id)
        .join(Post, Post.id == post_tags.c.post_id)
        .filter(Post.id == post_id, published_condition())
        .all()
    ]
    if tag_ids:
        shared = func.count(func.distinct(post_tags.c.tag_id)).label("shared_tag_count")
        rows = (
            db.query(Post, shared)
            .options(selectinload(Post.tags))
            .join(post_tags, post_tags.c.post_id == Post.id)
            .filter(post_tags.c.tag_id.in_(tag_ids), Post.id != post_id, published_condition())
            .group_by(Post.id)
            .order_by(shared.desc(), post_date.desc(), Post.id.desc())
            .limit(limit)
            .all()
        )
        if rows:
            return [(post, count) for post, count in rows]

    latest = (
        published_query(db)
        .filter(Post.id != post_id)
        .order_by(post_date.desc(), Post.id.desc())
        .limit(limit)
        .all()
    )
    return [(post, 0) for post in latest]


def list_archive_posts(db: Session) -> List[Post]:
    return (
        db.query(Post)
        .filter(published_condition())
        .order_by(func.coalesce(Post.published_at, Post.created_at).desc(), Post.id.desc())
        .all()
    )


def group_posts_by_year_and_month(posts: List[Post]) -> List[ArchiveYear]:
    """Newest year first, then newest month, then newest post."""
    years: Dict[int, Dict[int, List[ArchivePost]]] = {}
    for post in posts:
        date = post.published_at or post.created_at
        if date is None or not post.slug:
            continue
        months = years.setdefault(date.year, {})
        months.setdefault(date.month, []).append(
            ArchivePost(id=post.id, slug=post.slug, title=post.title, date=date)
        )

    return [
        ArchiveYear(
            year=year,
            months=[
                ArchiveMonth(
                    month=month,
                    posts=sorted(entries, key=lambda entry: entry.date, reverse=True),
                )
                for month, entries in sorted(months.items(), reverse=True)
            ],
        )
        for year, months in sorted(years.items(), reverse=True)
    ]


# ---------------------------------------------------------------------------
# Paths & text helpers
# ---------------------------------------------------------------------------


def build_post_path(slug: str) -> str:
    normalized = (slug or "").strip().lstrip("/")
    if not normalized:
        return "/"
    return f"{settings.post_route_prefix}/{normalized}"


def absolute_url(db: Session, path: str) -> str:
    base = get_site_base_url(db).rstrip("/")
    if not path.startswith("/"):
        path = f"/{path}"
    return f"{base}{path}"


def html_to_plain_text(html: Optional[str]) -> str:
    if not html:
        return ""
    return _WS_RE.sub(" ", unescape(_TAG_RE.sub(" ", html))).strip()


def truncate_to_length(value: str, limit: int) -> str:
    if len(value) <= limit:
        return value

    slice_point = max(limit - 1, 0)
    truncated = value[:slice_point]
    last_space = truncated.rfind(" ")
    if last_space > 0 and last_space >= slice_point * 0.6:
        truncated = truncated[:last_space]
    return f"{truncated.rstrip()}…"


def derive_meta_description(summary: Optional[str], content_html: Optional[str]) -> Optional[str]:
    """Summary if present, else the plain text of the body, capped at 160 chars."""
    if summary:
        collapsed = _WS_RE.sub(" ", summary).strip()
        if collapsed:
            return truncate_to_length(collapsed, META_DESCRIPTION_MAX_LENGTH)

    plain = html_to_plain_text(content_html)
    if not plain:
        return None
    return truncate_to_length(plain, META_DESCRIPTION_MAX_LENGTH)


# ---------------------------------------------------------------------------
# Serialisation
# ---------------------------------------------------------------------------


def to_post_card(post: Post) -> PublishedPostCard:
    summary = (post.summary or "").strip() or None
    return PublishedPostCard(
        id=post.id,
        slug=post.slug,
        title=post.title,
        summary=summary,
        meta_description=derive_meta_description(summary, post.content_html),
        cover_image_url=post.cover_image_url,
        is_featured=bool(post.is_featured),
        published_at=post.published_at,
        updated_at=post.updated_at,
        tags=[TagSummary.model_validate(t) for t in post.tags],
    )


def to_related_post(post: Post, shared_tag_count: int) -> RelatedPost:
    return RelatedPost(**to_post_card(post).model_dump(), shared_tag_count=shared_tag_count)


def to_published_post(db: Session, post: Post) -> PublishedPost:
    card = to_post_card(post)
    return PublishedPost(
        **card.model_dump(),
        content_md=(post.content_md or "").strip() or None,
        content_html=post.content_html or "",
        canonical_url=absolute_url(db, build_post_path(post.slug)),
        view_count=post.view_count or 0,
        created_at=post.created_at,
    )

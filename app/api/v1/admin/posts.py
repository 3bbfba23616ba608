import logging
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy import case, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from app.api.deps import get_current_admin_user
from app.api.errors import api_error, post_not_found
from app.core.exceptions import SlugConflict
from app.core.preview_token import PREVIEW_TOKEN_TTL_MS, create_token, now_ms
from app.db.session import get_db
from app.models.post import Post, PostRevision, PostStatus
from app.models.tag import Tag
from app.models.user import User
from app.schemas.common import PaginatedResponse, PostStats
from app.schemas.post import (
    BulkPostError,
    BulkPostRequest,
    BulkPostResponse,
    Post as PostSchema,
    PostCreate,
    PostRevision as PostRevisionSchema,
    PostRevisionList,
    PostSummary,
    PostUpdate,
    PreviewTokenResponse,
)
from app.utils.posts import absolute_url
from app.utils.revisions import apply_revision, describe_changes, save_revision_snapshot
from app.utils.slug import make_unique_slug, slugify_text
from app.utils.tags import find_missing_tag_ids, get_or_create_tags, normalize_ids

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/posts", tags=["Admin - Posts"])

# Inserts retried with a fresh slug when the unique index rejects the first one
SLUG_INSERT_ATTEMPTS = 3


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _check_id(value: int, label: str = "Post") -> None:
    if value <= 0:
        raise api_error(status.HTTP_400_BAD_REQUEST, "INVALID_IDENTIFIER", f"{label} id is invalid")


def _load_post(db: Session, post_id: int) -> Post:
    _check_id(post_id)
    post = (
        db.query(Post)
        .options(selectinload(Post.tags), selectinload(Post.author))
        .filter(Post.id == post_id)
        .first()
    )
    if not post:
        raise post_not_found()
    return post


def _slug_taken(db: Session, slug: str, exclude_post_id: Optional[int] = None) -> bool:
    query = db.query(Post.id).filter(Post.slug == slug)
    if exclude_post_id is not None:
        query = query.filter(Post.id != exclude_post_id)
    return query.first() is not None


def _normalize_explicit_slug(raw: str) -> str:
    normalized = slugify_text(raw.strip())
    if not normalized:
        raise api_error(status.HTTP_400_BAD_REQUEST, "VALIDATION_ERROR", "Slug cannot be empty")
    return normalized


def _resolve_tags(db: Session, tag_ids, tag_names) -> list:
    ids = normalize_ids(tag_ids or [])
    missing = find_missing_tag_ids(db, ids)
    if missing:
        raise api_error(
            status.HTTP_400_BAD_REQUEST,
            "TAG_NOT_FOUND",
            "Some tags do not exist",
            missing_tag_ids=missing,
        )
    tags = db.query(Tag).filter(Tag.id.in_(ids)).all() if ids else []
    for tag in get_or_create_tags(db, tag_names or []):
        if tag not in tags:
            tags.append(tag)
    return tags


def _has_content(content_md: Optional[str], content_html: Optional[str]) -> bool:
    return bool((content_md or "").strip() or (content_html or "").strip())


# ---------------------------------------------------------------------------
# Post CRUD
# ---------------------------------------------------------------------------


@router.get("/", response_model=PaginatedResponse[PostSummary])
def list_posts(
    status_filter: str = Query("all", alias="status", pattern="^(all|draft|published|archived)$"),
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    query = db.query(Post).options(selectinload(Post.author))
    if status_filter != "all":
        query = query.filter(Post.status == status_filter)
    if search and search.strip():
        like = f"%{search.strip()}%"
        query = query.filter(or_(Post.title.ilike(like), Post.slug.ilike(like)))

    total = query.count()
    posts = (
        query.order_by(Post.created_at.desc(), Post.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return PaginatedResponse(
        data=posts,
        total=total,
        page=page,
        limit=limit,
        total_pages=-(-total // limit) if total else 0,
    )


@router.get("/stats", response_model=PostStats)
def post_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    def _count(value: str):
        return func.coalesce(func.sum(case((Post.status == value, 1), else_=0)), 0)

    row = db.query(
        func.count(Post.id),
        _count(PostStatus.published.value),
        _count(PostStatus.draft.value),
        _count(PostStatus.archived.value),
    ).one()

    return PostStats(total=row[0], published=row[1], draft=row[2], archived=row[3])


@router.post("/", response_model=PostSchema, status_code=status.HTTP_201_CREATED)
def create_post(
    data: PostCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    explicit_slug = _normalize_explicit_slug(data.slug) if data.slug else None
    if explicit_slug and _slug_taken(db, explicit_slug):
        raise SlugConflict(explicit_slug)

    published_at = None
    if data.status == PostStatus.published:
        published_at = _as_utc(data.published_at) or datetime.now(timezone.utc)

    fields = data.model_dump(exclude={"slug", "tag_ids", "tags", "status", "published_at"})
    fields["title"] = data.title.strip()

    for attempt in range(1, SLUG_INSERT_ATTEMPTS + 1):
        slug = explicit_slug or make_unique_slug(db, data.title)
        post = Post(
            slug=slug,
            status=data.status.value,
            published_at=published_at,
            author_id=current_user.id,
            **fields,
        )
        post.tags = _resolve_tags(db, data.tag_ids, data.tags)
        db.add(post)
        try:
            db.flush()
            save_revision_snapshot(db, post, editor_id=current_user.id, diff_summary="Created")
            db.commit()
            break
        except IntegrityError:
            db.rollback()
            if explicit_slug:
                raise SlugConflict(explicit_slug)
            logger.warning("Slug %r collided on insert (attempt %d/%d)", slug, attempt, SLUG_INSERT_ATTEMPTS)
    else:
        raise api_error(status.HTTP_409_CONFLICT, "SLUG_CONFLICT", "Could not allocate a unique slug")

    logger.info("Post %d created with slug %r by user %d", post.id, post.slug, current_user.id)
    return _load_post(db, post.id)


@router.get("/{id}", response_model=PostSchema)
def get_post(
    id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    return _load_post(db, id)


@router.put("/{id}", response_model=PostSchema)
@router.patch("/{id}", response_model=PostSchema)
def update_post(
    id: int,
    data: PostUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    post = _load_post(db, id)
    changes = data.model_dump(exclude_unset=True, exclude={"tag_ids", "tags"})

    if "title" in changes:
        title = (changes["title"] or "").strip()
        if not title:
            raise api_error(status.HTTP_400_BAD_REQUEST, "VALIDATION_ERROR", "Title cannot be empty")
        changes["title"] = title

    if "slug" in changes:
        slug = _normalize_explicit_slug(changes["slug"] or "")
        if slug != post.slug and _slug_taken(db, slug, exclude_post_id=post.id):
            raise SlugConflict(slug)
        changes["slug"] = slug

    for flag in ("is_featured", "allow_comments"):
        if flag in changes and changes[flag] is None:
            del changes[flag]

    next_status = changes.get("status") or PostStatus(post.status)
    if "status" in changes:
        if changes["status"] is None:
            del changes["status"]
        else:
            changes["status"] = changes["status"].value

    if next_status == PostStatus.published:
        if not _has_content(
            changes.get("content_md", post.content_md),
            changes.get("content_html", post.content_html),
        ):
            raise api_error(
                status.HTTP_400_BAD_REQUEST, "VALIDATION_ERROR", "Content is required when publishing"
            )

    explicit_published_at = "published_at" in changes
    requested_published_at = _as_utc(changes.pop("published_at", None))
    if next_status == PostStatus.draft:
        changes["published_at"] = requested_published_at
    elif next_status == PostStatus.published:
        if not explicit_published_at:
            changes["published_at"] = post.published_at or datetime.now(timezone.utc)
        else:
            changes["published_at"] = requested_published_at or datetime.now(timezone.utc)
    elif explicit_published_at:
        changes["published_at"] = requested_published_at

    diff_summary = describe_changes(post, changes)

    for field, value in changes.items():
        setattr(post, field, value)

    if data.tag_ids is not None or data.tags is not None:
        post.tags = _resolve_tags(db, data.tag_ids, data.tags)
        diff_summary = diff_summary or "Changed: tags"

    try:
        db.flush()
        save_revision_snapshot(db, post, editor_id=current_user.id, diff_summary=diff_summary)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise SlugConflict(changes.get("slug", post.slug))

    return _load_post(db, id)


@router.delete("/{id}", status_code=status.HTTP_200_OK)
def delete_post(
    id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    post = _load_post(db, id)
    db.delete(post)
    db.commit()
    logger.info("Post %d deleted by user %d", id, current_user.id)
    return {"success": True, "id": id}


@router.post("/bulk", response_model=BulkPostResponse)
def bulk_action(
    data: BulkPostRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    ids = normalize_ids(data.ids)
    if not ids:
        raise api_error(status.HTTP_400_BAD_REQUEST, "VALIDATION_ERROR", "Select at least one post")

    posts = {p.id: p for p in db.query(Post).filter(Post.id.in_(ids)).all()}
    errors = []
    success_count = 0
    now = datetime.now(timezone.utc)

    for post_id in ids:
        post = posts.get(post_id)
        if post is None:
            errors.append(BulkPostError(id=post_id, error="Post not found"))
            continue

        if data.action == "delete":
            db.delete(post)
        elif data.action == "publish":
            if not post.title.strip() or not _has_content(post.content_md, post.content_html):
                errors.append(BulkPostError(id=post_id, error="Title and content are required to publish"))
                continue
            post.status = PostStatus.published.value
            post.published_at = post.published_at or now
        elif data.action == "draft":
            post.status = PostStatus.draft.value
            post.published_at = None
        elif data.action == "archive":
            post.status = PostStatus.archived.value
        success_count += 1

    db.commit()
    logger.info("Bulk %s on %d post(s): %d ok, %d failed", data.action, len(ids), success_count, len(errors))
    return BulkPostResponse(success=True, success_count=success_count, errors=errors)


# ---------------------------------------------------------------------------
# Preview links
# ---------------------------------------------------------------------------


@router.post("/{id}/preview-token", response_model=PreviewTokenResponse)
def issue_preview_token(
    id: int,
    response: Response,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    post = _load_post(db, id)
    if post.status == PostStatus.archived.value:
        raise api_error(
            status.HTTP_400_BAD_REQUEST, "POST_ARCHIVED", "Archived posts cannot be previewed"
        )

    signed = create_token(post.id)
    preview_url = absolute_url(db, f"/preview/{quote(signed.token, safe='')}")
    expires_at = datetime.fromtimestamp(signed.payload.exp / 1000, tz=timezone.utc)

    logger.info("Issued preview token for post %d (exp=%d)", post.id, signed.payload.exp)
    response.headers["Cache-Control"] = "no-store"
    return PreviewTokenResponse(
        token=signed.token,
        preview_url=preview_url,
        expires_at=expires_at.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        expires_in_ms=max(0, signed.payload.exp - now_ms()),
        ttl_ms=PREVIEW_TOKEN_TTL_MS,
    )


# ---------------------------------------------------------------------------
# Revisions
# ---------------------------------------------------------------------------


def _load_revision(db: Session, post_id: int, revision_id: int) -> PostRevision:
    _check_id(revision_id, "Revision")
    revision = (
        db.query(PostRevision)
        .filter(PostRevision.post_id == post_id, PostRevision.id == revision_id)
        .first()
    )
    if not revision:
        raise api_error(status.HTTP_404_NOT_FOUND, "REVISION_NOT_FOUND", "Revision not found")
    return revision


@router.get("/{id}/revisions", response_model=PostRevisionList)
def list_revisions(
    id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    post = _load_post(db, id)
    revisions = (
        db.query(PostRevision)
        .options(selectinload(PostRevision.editor))
        .filter(PostRevision.post_id == post.id)
        .order_by(PostRevision.revision_number.desc())
        .all()
    )
    return PostRevisionList(revisions=revisions, count=len(revisions))


@router.get("/{id}/revisions/{revision_id}", response_model=PostRevisionSchema)
def get_revision(
    id: int,
    revision_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    _check_id(id)
    return _load_revision(db, id, revision_id)


@router.post("/{id}/revisions/{revision_id}/restore", response_model=PostSchema)
def restore_revision(
    id: int,
    revision_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    post = _load_post(db, id)
    revision = _load_revision(db, post.id, revision_id)

    if revision.slug and revision.slug != post.slug and _slug_taken(db, revision.slug, post.id):
        raise SlugConflict(revision.slug)

    apply_revision(post, revision)
    try:
        db.flush()
        save_revision_snapshot(
            db,
            post,
            editor_id=current_user.id,
            diff_summary=f"Restored revision {revision.revision_number}",
        )
        db.commit()
    except IntegrityError:
        db.rollback()
        raise SlugConflict(revision.slug or post.slug)

    logger.info("Post %d restored to revision %d", post.id, revision.revision_number)
    return _load_post(db, id)

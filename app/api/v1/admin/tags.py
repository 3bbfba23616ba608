import logging
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.api.deps import get_current_admin_user
from app.api.errors import api_error, tag_not_found
from app.core.exceptions import SlugConflict
from app.db.session import get_db
from app.models.tag import Tag, post_tags
from app.models.user import User
from app.schemas.tag import Tag as TagSchema, TagCreate, TagUpdate
from app.utils.tags import make_unique_tag_slug

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tags", tags=["Admin - Tags"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _tag_rows(db: Session):
    return (
        db.query(Tag, func.count(post_tags.c.post_id).label("post_count"))
        .outerjoin(post_tags, post_tags.c.tag_id == Tag.id)
        .group_by(Tag.id)
    )


def _serialize(tag: Tag, post_count: int) -> TagSchema:
    return TagSchema(
        id=tag.id,
        name=tag.name,
        slug=tag.slug,
        post_count=post_count or 0,
        created_at=tag.created_at,
        updated_at=tag.updated_at,
    )


def _get_tag(db: Session, tag_id: int) -> TagSchema:
    row = _tag_rows(db).filter(Tag.id == tag_id).first()
    if not row:
        raise tag_not_found()
    return _serialize(*row)


def _ensure_available(db: Session, name: str, slug: str, exclude_id: int = None) -> None:
    query = db.query(Tag)
    if exclude_id is not None:
        query = query.filter(Tag.id != exclude_id)
    if query.filter(Tag.name == name).first():
        raise api_error(status.HTTP_409_CONFLICT, "TAG_CONFLICT", f"Tag '{name}' already exists")
    if query.filter(Tag.slug == slug).first():
        raise SlugConflict(slug)


# ---------------------------------------------------------------------------
# Tag CRUD
# ---------------------------------------------------------------------------


@router.get("/", response_model=List[TagSchema])
def list_tags(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    return [_serialize(tag, count) for tag, count in _tag_rows(db).order_by(Tag.name.asc()).all()]


@router.post("/", response_model=TagSchema, status_code=status.HTTP_201_CREATED)
def create_tag(
    data: TagCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    name = data.name.strip()
    if not name:
        raise api_error(status.HTTP_400_BAD_REQUEST, "VALIDATION_ERROR", "Tag name cannot be empty")
    slug = data.slug or make_unique_tag_slug(db, name)
    _ensure_available(db, name, slug)

    tag = Tag(name=name, slug=slug)
    db.add(tag)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise api_error(status.HTTP_409_CONFLICT, "TAG_CONFLICT", f"Tag '{name}' already exists")
    db.refresh(tag)
    return _serialize(tag, 0)


@router.get("/{id}", response_model=TagSchema)
def get_tag(
    id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    return _get_tag(db, id)


@router.put("/{id}", response_model=TagSchema)
@router.patch("/{id}", response_model=TagSchema)
def update_tag(
    id: int,
    data: TagUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    tag = db.query(Tag).filter(Tag.id == id).first()
    if not tag:
        raise tag_not_found()

    name = data.name.strip() if data.name is not None else tag.name
    if not name:
        raise api_error(status.HTTP_400_BAD_REQUEST, "VALIDATION_ERROR", "Tag name cannot be empty")
    slug = data.slug or tag.slug
    _ensure_available(db, name, slug, exclude_id=tag.id)

    tag.name = name
    tag.slug = slug
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise api_error(status.HTTP_409_CONFLICT, "TAG_CONFLICT", f"Tag '{name}' already exists")
    return _get_tag(db, id)


@router.delete("/{id}", status_code=status.HTTP_200_OK)
def delete_tag(
    id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    tag = db.query(Tag).filter(Tag.id == id).first()
    if not tag:
        raise tag_not_found()

    # Association rows go with the tag; posts are untouched
    tag.posts = []
    db.delete(tag)
    db.commit()
    logger.info("Tag %d deleted by user %d", id, current_user.id)
    return {"success": True, "id": id}

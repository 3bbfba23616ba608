from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models.post import Post, PostRevision

# Post fields captured in every revision snapshot
SNAPSHOT_FIELDS = (
    "title",
    "slug",
    "summary",
    "content_md",
    "content_html",
    "cover_image_url",
    "status",
    "is_featured",
    "allow_comments",
    "published_at",
)


def next_revision_number(db: Session, post_id: int) -> int:
    latest = (
        db.query(func.max(PostRevision.revision_number))
        .filter(PostRevision.post_id == post_id)
        .scalar()
    )
    return (latest or 0) + 1


def save_revision_snapshot(
    db: Session,
    post: Post,
    editor_id: Optional[int] = None,
    diff_summary: Optional[str] = None,
) -> PostRevision:
    """Record the current state of post as a new revision. Does not commit."""
    revision = PostRevision(
        post_id=post.id,
        revision_number=next_revision_number(db, post.id),
        editor_id=editor_id,
        diff_summary=diff_summary[:255] if diff_summary else None,
        **{field: getattr(post, field) for field in SNAPSHOT_FIELDS},
    )
    db.add(revision)
    db.flush()
    return revision


def describe_changes(post: Post, changes: dict) -> Optional[str]:
    changed = sorted(
        field for field, value in changes.items()
        if field in SNAPSHOT_FIELDS and getattr(post, field) != value
    )
    if not changed:
        return None
    return "Changed: " + ", ".join(changed)


def apply_revision(post: Post, revision: PostRevision) -> None:
    """Copy a revision snapshot back onto post. Null snapshot fields are skipped."""
    for field in SNAPSHOT_FIELDS:
        value = getattr(revision, field)
        if value is None and field not in ("summary", "cover_image_url", "published_at"):
            continue
        setattr(post, field, value)

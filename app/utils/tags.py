import logging
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from app.models.tag import Tag
from app.utils.slug import resolve_unique_slug, to_canonical_slug

logger = logging.getLogger(__name__)


def normalize_ids(ids: Iterable[int]) -> List[int]:
    """Deduplicate ids keeping order; drop non-positive values."""
    seen = []
    for value in ids:
        if isinstance(value, int) and not isinstance(value, bool) and value > 0 and value not in seen:
            seen.append(value)
    return seen


def find_missing_tag_ids(db: Session, tag_ids: List[int]) -> List[int]:
    if not tag_ids:
        return []
    found = {row.id for row in db.query(Tag.id).filter(Tag.id.in_(tag_ids)).all()}
    return [tag_id for tag_id in tag_ids if tag_id not in found]


def make_unique_tag_slug(db: Session, name: str, exclude_tag_id: Optional[int] = None) -> str:
    query = db.query(Tag.slug)
    if exclude_tag_id is not None:
        query = query.filter(Tag.id != exclude_tag_id)
    taken = {row.slug for row in query.all()}
    return resolve_unique_slug(to_canonical_slug(name), taken)


def get_or_create_tags(db: Session, names: Iterable[str]) -> List[Tag]:
    """Look tags up by name, creating the missing ones. Flushes, does not commit."""
    tags: List[Tag] = []
    for raw_name in names:
        name = (raw_name or "").strip()
        if not name or any(t.name == name for t in tags):
            continue
        tag = db.query(Tag).filter(Tag.name == name).first()
        if tag is None:
            tag = Tag(name=name, slug=make_unique_tag_slug(db, name))
            db.add(tag)
            db.flush()
            logger.info("Created tag %r (%s)", tag.name, tag.slug)
        tags.append(tag)
    return tags

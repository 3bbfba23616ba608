"""
Rewrite legacy post slugs into canonical ASCII form.

Usage:
    python migrate_slugs.py --dry-run
    python migrate_slugs.py
"""

import argparse
import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from app.db.session import SessionLocal
from app.models.post import Post
from app.utils.slug import random_slug_id, resolve_unique_slug, to_canonical_slug

logger = logging.getLogger(__name__)

NON_CANONICAL_SLUG_RE = re.compile(r"[^a-z0-9-]")


@dataclass
class SlugMigration:
    id: int
    title: Optional[str]
    old_slug: str
    new_slug: str


def find_legacy_posts(db: Session) -> List[Post]:
    posts = db.query(Post).order_by(Post.id.asc()).all()
    return [post for post in posts if NON_CANONICAL_SLUG_RE.search(post.slug)]


def plan_slug_migrations(db: Session, random_suffix=random_slug_id) -> List[SlugMigration]:
    """
    Work out the new slug for every post with a non-canonical slug.

    Nothing is written. SlugGenerationExhausted from any post aborts the
    whole plan.
    """
    legacy_posts = find_legacy_posts(db)
    if not legacy_posts:
        return []

    taken = {row.slug for row in db.query(Post.slug).all()}
    plan = []

    for post in legacy_posts:
        taken.discard(post.slug)

        source = (post.title or "").strip() or post.slug
        new_slug = resolve_unique_slug(to_canonical_slug(source), taken, random_suffix)

        if new_slug == post.slug:
            taken.add(post.slug)
            continue

        taken.add(new_slug)
        plan.append(SlugMigration(id=post.id, title=post.title, old_slug=post.slug, new_slug=new_slug))

    return plan


def slug_mapping(plan: List[SlugMigration]) -> Dict[str, str]:
    return {item.old_slug: item.new_slug for item in plan}


def apply_slug_migrations(db: Session, plan: List[SlugMigration]) -> int:
    """Apply the plan in a single transaction; any failure rolls back every update."""
    now = datetime.now(timezone.utc)
    try:
        for item in plan:
            db.query(Post).filter(Post.id == item.id).update(
                {Post.slug: item.new_slug, Post.updated_at: now},
                synchronize_session=False,
            )
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Slug migration failed, transaction rolled back")
        raise
    return len(plan)


def migrate_slugs(db: Session, dry_run: bool = False) -> List[SlugMigration]:
    plan = plan_slug_migrations(db)

    if not plan:
        print("No posts found with non-normalized slugs.")
        return plan

    print(f"{'[Dry Run] ' if dry_run else ''}Planned slug updates ({len(plan)}):")
    for item in plan:
        print(f"- {item.old_slug} -> {item.new_slug}")
        logger.info("Post %d: %r -> %r", item.id, item.old_slug, item.new_slug)

    print("Slug mapping:")
    print(json.dumps(slug_mapping(plan), indent=2, ensure_ascii=False))

    if dry_run:
        print("Dry run complete. No database changes were made.")
        return plan

    updated = apply_slug_migrations(db, plan)
    print(f"Slug migration complete. Updated {updated} posts.")
    return plan


def main(argv=None):
    parser = argparse.ArgumentParser(description="Rewrite legacy post slugs into canonical form.")
    parser.add_argument("--dry-run", action="store_true", help="print the plan without writing")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)
    db = SessionLocal()
    try:
        migrate_slugs(db, dry_run=args.dry_run)
    finally:
        db.close()


if __name__ == "__main__":
    main()

"""
Public page handlers: canonical post pages and preview links.

These return the document a renderer needs; templating itself lives
outside this service.
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Response, status
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session, selectinload

from app.api.deps import get_slug_resolver
from app.api.errors import api_error, post_not_found
from app.core.config import settings
from app.core.preview_token import now_ms, verify_token
from app.db.session import get_db
from app.models.post import Post
from app.schemas.post import PreviewPost, PublishedPost
from app.utils.posts import build_post_path, to_published_post
from app.utils.slug_resolver import SlugResolver

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Pages"])


@router.get("/preview/{token}", response_model=PreviewPost)
def preview_post(token: str, response: Response, db: Session = Depends(get_db)):
    response.headers["Cache-Control"] = "no-store"
    response.headers["X-Robots-Tag"] = "noindex, nofollow"

    payload = verify_token(token)
    if payload is None:
        raise api_error(
            status.HTTP_404_NOT_FOUND,
            "PREVIEW_INVALID",
            "Preview link is invalid or has expired",
        )

    # Any status, drafts included
    post = (
        db.query(Post)
        .options(selectinload(Post.tags))
        .filter(Post.id == payload.post_id)
        .first()
    )
    if not post:
        raise post_not_found()

    expires_at = datetime.fromtimestamp(payload.exp / 1000, tz=timezone.utc)
    return PreviewPost(
        **to_published_post(db, post).model_dump(),
        status=post.status,
        preview_expires_at=expires_at.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        preview_expires_in_ms=max(0, payload.exp - now_ms()),
    )


@router.get(settings.post_route_prefix + "/{slug}", response_model=PublishedPost)
def read_post(
    slug: str,
    db: Session = Depends(get_db),
    resolver: SlugResolver = Depends(get_slug_resolver),
):
    resolution = resolver.resolve(slug)

    if resolution.needs_redirect:
        target = build_post_path(resolution.redirect_slug)
        logger.debug("Redirecting %r to %s", slug, target)
        return RedirectResponse(url=target, status_code=status.HTTP_308_PERMANENT_REDIRECT)

    if not resolution.found:
        raise post_not_found()

    return to_published_post(db, resolution.post)

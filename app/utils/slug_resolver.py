"""
Resolve an inbound URL slug to a published post.

Links may predate the current transliteration scheme or carry raw Unicode
instead of the canonical slug. Rather than answering 404, the resolver
re-derives the canonical slug and asks the caller to issue a permanent
redirect.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional
from urllib.parse import unquote

from sqlalchemy.orm import Session

from app.models.post import Post
from app.utils.posts import get_published_post_by_slug
from app.utils.slug import is_canonical_slug, slugify_text

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SlugResolution:
    post: Optional[Post]
    redirect_slug: Optional[str] = None

    @property
    def found(self) -> bool:
        return self.post is not None

    @property
    def needs_redirect(self) -> bool:
        return self.redirect_slug is not None


NOT_FOUND = SlugResolution(post=None)


def decode_slug_value(value: str) -> str:
    """Percent-decode a slug; malformed input is treated as already decoded."""
    try:
        return unquote(value, errors="strict")
    except UnicodeDecodeError:
        return value


class SlugResolver:
    """
    Per-request slug resolver.

    Results are memoised per raw slug for the lifetime of the instance, so
    one instance should be created per request (see app.api.deps).
    """

    def __init__(self, db: Session, lookup: Optional[Callable[[Session, str], Optional[Post]]] = None):
        self.db = db
        self._lookup = lookup or get_published_post_by_slug
        self._cache: Dict[str, SlugResolution] = {}

    def resolve(self, raw_slug: str) -> SlugResolution:
        if raw_slug not in self._cache:
            self._cache[raw_slug] = self._resolve(raw_slug)
        return self._cache[raw_slug]

    def _resolve(self, raw_slug: str) -> SlugResolution:
        direct = self._lookup(self.db, raw_slug)
        if direct is not None:
            stored = (direct.slug or "").strip()
            if stored and stored != raw_slug:
                return SlugResolution(post=direct, redirect_slug=stored)
            return SlugResolution(post=direct)

        decoded = decode_slug_value(raw_slug)
        if not decoded or not decoded.strip():
            return NOT_FOUND

        # Already canonical and already looked up: deriving again cannot help
        if decoded == raw_slug and is_canonical_slug(raw_slug):
            return NOT_FOUND

        candidate = slugify_text(decoded)
        if not candidate or candidate == raw_slug:
            return NOT_FOUND

        fallback = self._lookup(self.db, candidate)
        if fallback is None:
            return NOT_FOUND

        if fallback.slug != raw_slug:
            logger.debug("Slug %r resolved to %r via transliteration", raw_slug, fallback.slug)
            return SlugResolution(post=fallback, redirect_slug=fallback.slug)
        return SlugResolution(post=fallback)

import logging
import re
import secrets
import string
import unicodedata
from typing import Callable, Iterable, Optional, Set

from slugify import slugify
from sqlalchemy.orm import Session
from text_unidecode import unidecode

from app.core.exceptions import SlugGenerationExhausted
from app.models.post import Post

logger = logging.getLogger(__name__)

SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")

RANDOM_ID_ALPHABET = string.ascii_lowercase + string.digits
RANDOM_ID_LENGTH = 6

INCREMENTAL_SUFFIX_LIMIT = 10
RANDOM_SUFFIX_ATTEMPTS = 5


def random_slug_id(length: int = RANDOM_ID_LENGTH) -> str:
    return "".join(secrets.choice(RANDOM_ID_ALPHABET) for _ in range(length))


def to_phonetic_text(text: str) -> str:
    """
    Transliterate non-Latin script into space-separated Latin syllables.

    "Hello 世界" -> "Hello Shi Jie". Latin segments pass through unchanged
    apart from losing their diacritics.
    """
    trimmed = (text or "").strip()
    if not trimmed:
        return ""
    decomposed = unicodedata.normalize("NFD", trimmed)
    return " ".join(unidecode(decomposed).split())


def slugify_text(text: str) -> str:
    """Normalize text to slug form. Returns "" when nothing survives."""
    phonetic = to_phonetic_text(text)
    if not phonetic:
        return ""
    # Commas separate words; entity references stay literal text
    return slugify(
        phonetic.replace(",", " "),
        entities=False,
        decimal=False,
        hexadecimal=False,
        regex_pattern=r"[^a-z0-9]+",
    )


def to_canonical_slug(text: str) -> str:
    """Like slugify_text but never empty: falls back to post-<random6>."""
    normalized = slugify_text(text if isinstance(text, str) else str(text or ""))
    if normalized:
        return normalized
    return f"post-{random_slug_id()}"


generate_slug = to_canonical_slug


def is_canonical_slug(candidate: str) -> bool:
    if not isinstance(candidate, str) or candidate != candidate.strip():
        return False
    return SLUG_PATTERN.fullmatch(candidate) is not None


def resolve_unique_slug(
    base_slug: str,
    taken_slugs: Iterable[str],
    random_suffix: Callable[[], str] = random_slug_id,
) -> str:
    """
    Return base_slug if free, else base-2 .. base-11, else base-<random>.

    Both phases are bounded; SlugGenerationExhausted is raised when every
    candidate collides.
    """
    taken: Set[str] = taken_slugs if isinstance(taken_slugs, set) else set(taken_slugs)
    base = base_slug or f"post-{random_suffix()}"

    if base not in taken:
        return base

    for increment in range(2, INCREMENTAL_SUFFIX_LIMIT + 2):
        candidate = f"{base}-{increment}"
        if candidate not in taken:
            logger.info("Slug %r taken, using %r", base, candidate)
            return candidate

    for _ in range(RANDOM_SUFFIX_ATTEMPTS):
        candidate = f"{base}-{random_suffix()}"
        if candidate not in taken:
            logger.info("Slug %r and numeric variants taken, using %r", base, candidate)
            return candidate

    logger.error("Slug generation exhausted for base %r", base)
    raise SlugGenerationExhausted(base)


def load_taken_slugs(db: Session, exclude_post_id: Optional[int] = None) -> Set[str]:
    query = db.query(Post.slug)
    if exclude_post_id is not None:
        query = query.filter(Post.id != exclude_post_id)
    return {row.slug for row in query.all()}


def make_unique_slug(db: Session, text: str, exclude_post_id: Optional[int] = None) -> str:
    """
    Generate a slug for text that no other post currently uses.

    This is an advisory pre-check; the unique index on posts.slug is the
    final arbiter and callers must handle IntegrityError on insert.
    """
    base_slug = to_canonical_slug(text)
    return resolve_unique_slug(base_slug, load_taken_slugs(db, exclude_post_id))

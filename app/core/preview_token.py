"""
Signed, time-limited preview links.

A preview token grants read access to a single post, published or not,
to whoever holds it. Tokens are stateless: the post id and the absolute
expiry (epoch milliseconds) travel inside an HMAC-SHA256 signed payload,
so verification needs nothing but the signing secret. There is no
revocation list; rotating the secret invalidates every outstanding token.

Token layout::

    base64url(json({"postId": <int>, "exp": <epoch-ms>})) "." base64url(hmac)
"""

import base64
import binascii
import hashlib
import hmac
import json
import logging
import math
import re
import time
from dataclasses import dataclass
from typing import Any, Optional

from app.core.config import settings
from app.core.exceptions import InvalidPreviewTokenInput, PreviewTokenMissingSecret

logger = logging.getLogger(__name__)

PREVIEW_TOKEN_TTL_MS = 24 * 60 * 60 * 1000  # 24 hours

BASE64_URL_RE = re.compile(r"^[A-Za-z0-9_-]+$")
MAX_SAFE_INTEGER = 2 ** 53 - 1

_cached_secret: Optional[str] = None


@dataclass(frozen=True)
class PreviewTokenPayload:
    post_id: int
    exp: int

    def to_wire(self) -> dict:
        return {"postId": self.post_id, "exp": self.exp}


@dataclass(frozen=True)
class SignedPreviewToken:
    token: str
    payload: PreviewTokenPayload


def now_ms() -> int:
    return int(time.time() * 1000)


def reset_secret_cache() -> None:
    """Forget the cached signing secret (secret rotation, tests)."""
    global _cached_secret
    _cached_secret = None


def get_secret() -> str:
    """
    Resolve the signing secret once per process.

    PREVIEW_TOKEN_SECRET wins; the general SECRET_KEY is the fallback.
    Concurrent first calls all compute the same value, so the race is benign.
    """
    global _cached_secret
    if _cached_secret:
        return _cached_secret

    explicit = (settings.PREVIEW_TOKEN_SECRET or "").strip()
    session_secret = (settings.SECRET_KEY or "").strip()
    resolved = explicit or session_secret

    if not resolved:
        raise PreviewTokenMissingSecret(
            "PREVIEW_TOKEN_SECRET (or SECRET_KEY) must be configured to support preview links."
        )

    _cached_secret = resolved
    return _cached_secret


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64url_decode(value: str) -> Optional[bytes]:
    if not value or not BASE64_URL_RE.match(value):
        return None

    normalized = value.replace("-", "+").replace("_", "/")
    padded = normalized + "=" * (-len(normalized) % 4)

    try:
        return base64.b64decode(padded)
    except (binascii.Error, ValueError):
        return None


def _sign(encoded_payload: str) -> bytes:
    return hmac.new(
        get_secret().encode("utf-8"),
        encoded_payload.encode("utf-8"),
        hashlib.sha256,
    ).digest()


def _signatures_match(provided: bytes, expected: bytes) -> bool:
    if len(provided) != len(expected) or len(provided) == 0:
        return False
    return hmac.compare_digest(provided, expected)


def _is_finite_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    if isinstance(value, float):
        return math.isfinite(value)
    return True


def create_token(post_id: Any, ttl_ms: Optional[Any] = None) -> SignedPreviewToken:
    if not _is_finite_number(post_id):
        raise InvalidPreviewTokenInput("post_id must be a finite number")

    normalized_post_id = int(post_id)
    if normalized_post_id <= 0:
        raise InvalidPreviewTokenInput("post_id must be a positive integer")

    if _is_finite_number(ttl_ms) and ttl_ms > 0:
        ttl = int(ttl_ms)
    else:
        ttl = PREVIEW_TOKEN_TTL_MS

    payload = PreviewTokenPayload(post_id=normalized_post_id, exp=now_ms() + ttl)
    serialized = json.dumps(payload.to_wire(), separators=(",", ":"))
    encoded_payload = _b64url_encode(serialized.encode("utf-8"))
    encoded_signature = _b64url_encode(_sign(encoded_payload))

    return SignedPreviewToken(token=f"{encoded_payload}.{encoded_signature}", payload=payload)


def verify_token(token: Any) -> Optional[PreviewTokenPayload]:
    """Return the payload of a valid, unexpired token, otherwise None."""
    if not isinstance(token, str) or not token:
        return None

    segments = token.split(".")
    if len(segments) != 2:
        logger.debug("Preview token rejected: %d segments", len(segments))
        return None

    encoded_payload, encoded_signature = segments
    payload_bytes = _b64url_decode(encoded_payload)
    provided_signature = _b64url_decode(encoded_signature)
    if payload_bytes is None or provided_signature is None:
        logger.debug("Preview token rejected: bad base64url segment")
        return None

    if not _signatures_match(provided_signature, _sign(encoded_payload)):
        logger.debug("Preview token rejected: signature mismatch")
        return None

    try:
        decoded = json.loads(payload_bytes.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        return None

    if not isinstance(decoded, dict):
        return None

    post_id = decoded.get("postId")
    exp = decoded.get("exp")

    if not _is_finite_number(post_id) or post_id <= 0:
        return None
    if not _is_finite_number(exp):
        return None

    normalized_post_id = int(post_id)
    if normalized_post_id <= 0 or normalized_post_id > MAX_SAFE_INTEGER:
        return None

    if exp <= now_ms():
        logger.debug("Preview token for post %s expired", normalized_post_id)
        return None

    return PreviewTokenPayload(post_id=normalized_post_id, exp=int(exp))

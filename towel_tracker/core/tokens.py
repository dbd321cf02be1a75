"""Token service — stateless, time-limited HS256 bearer tokens.

One mechanism, two uses:
- magic links (minutes) sent by the bot and exchanged at ``/login``;
- session cookies (days) carried by the browser afterwards.

Nothing is persisted and nothing can be revoked: a leaked token stays valid
until it expires. Every verification failure collapses to ``None`` so callers
cannot tell a bad signature from an expired token.
"""

from __future__ import annotations

import binascii
import logging
import time
from dataclasses import dataclass, field
from urllib.parse import urlencode

import jwt
from jwt.utils import base64url_decode, base64url_encode

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"

_DECODE_OPTIONS = {
    "require": ["exp"],
    # expiry and issue time are checked against the injectable clock below
    "verify_exp": False,
    "verify_iat": False,
}


@dataclass
class TokenPayload:
    """Decoded claims of a verified token."""

    subject: str
    issued_at: int
    expires_at: int
    claims: dict = field(default_factory=dict)


def _now(now: float | None) -> int:
    return int(now if now is not None else time.time())


def issue_token(
    subject: str | int, ttl_seconds: int, secret: str, now: float | None = None,
) -> str:
    """Sign ``{sub, iat, exp}`` with HMAC-SHA256 and return the compact token."""
    issued = _now(now)
    payload = {"sub": str(subject), "iat": issued, "exp": issued + int(ttl_seconds)}
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def _signature_is_canonical(segment: str) -> bool:
    # base64url has spare bits in its last character; insist on the exact
    # encoding so that every altered bit of the segment is a rejection.
    try:
        return base64url_encode(base64url_decode(segment)).decode("ascii") == segment
    except (binascii.Error, ValueError):
        return False


def verify_token(token: str, secret: str, now: float | None = None) -> TokenPayload | None:
    """Return the payload of a valid, unexpired token, or None."""
    if not token or not secret:
        return None
    parts = str(token).split(".")
    if len(parts) != 3 or not _signature_is_canonical(parts[2]):
        return None

    try:
        claims = jwt.decode(
            token, secret, algorithms=[ALGORITHM], options=_DECODE_OPTIONS,
        )
    except jwt.InvalidTokenError as exc:
        logger.debug("Token rejected: %s", type(exc).__name__)
        return None

    try:
        expires_at = int(claims["exp"])
        issued_at = int(claims.get("iat", 0))
    except (TypeError, ValueError):
        return None
    if _now(now) > expires_at:
        logger.debug("Token rejected: expired")
        return None

    subject = claims.get("sub")
    if subject is None:
        return None
    return TokenPayload(
        subject=str(subject), issued_at=issued_at, expires_at=expires_at, claims=claims,
    )


def build_magic_link(
    public_url: str, actor_id: int, ttl_seconds: int, secret: str, now: float | None = None,
) -> str:
    """Return ``<public_url>/login?token=...`` or "" when the web panel is not configured."""
    if not public_url or not secret:
        return ""
    token = issue_token(actor_id, ttl_seconds, secret, now=now)
    return f"{public_url.rstrip('/')}/login?{urlencode({'token': token})}"

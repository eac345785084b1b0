"""
JWT-style token creation and verification.

Tokens are unpadded base64url JSON payloads signed with HMAC-SHA256::

    <base64url({"sub": ..., "iat": ..., "exp": ...})>.<hex signature>

Secret key is loaded from ``config.jwt_secret`` (env var: ``JWT_SECRET``).
Tokens are stateless; nothing is stored or revoked server-side.
"""

from __future__ import annotations

import binascii
import hashlib
import hmac
import json
import time
from base64 import urlsafe_b64decode, urlsafe_b64encode

from config.settings import config

_TOKEN_SECRET = config.jwt_secret
_TOKEN_EXPIRY_SECONDS = config.jwt_expiry_seconds


class TokenError(Exception):
    """Base class for token verification failures."""


class TokenInvalidError(TokenError):
    pass


class TokenExpiredError(TokenError):
    pass


def _sign(raw: bytes) -> str:
    return hmac.new(_TOKEN_SECRET.encode(), raw, hashlib.sha256).hexdigest()


def create_token(user_id: str) -> str:
    """Create a signed token containing ``user_id`` as subject plus issue/expiry times."""
    now = int(time.time())
    payload = {
        "sub": user_id,
        "iat": now,
        "exp": now + _TOKEN_EXPIRY_SECONDS,
    }
    raw = json.dumps(payload, separators=(",", ":")).encode()
    return urlsafe_b64encode(raw).rstrip(b"=").decode() + "." + _sign(raw)


def verify_token(token: str) -> str:
    """
    Verify token and return the subject ``user_id``.

    Raises ``TokenInvalidError`` on malformed or tampered tokens and
    ``TokenExpiredError`` once ``exp`` has passed.
    """
    parts = token.split(".")
    if len(parts) != 2:
        raise TokenInvalidError("bad format")
    encoded, sig = parts

    try:
        raw = urlsafe_b64decode(encoded.encode("ascii") + b"=" * (-len(encoded) % 4))
    except (binascii.Error, UnicodeEncodeError, ValueError):
        raise TokenInvalidError("bad encoding")
    # Only the canonical encoding is accepted; trailing spare bits must not vary.
    if urlsafe_b64encode(raw).rstrip(b"=").decode() != encoded:
        raise TokenInvalidError("bad encoding")

    if not hmac.compare_digest(sig.encode(), _sign(raw).encode()):
        raise TokenInvalidError("bad signature")

    try:
        payload = json.loads(raw)
        subject = payload["sub"]
        expires_at = int(payload["exp"])
    except (ValueError, KeyError, TypeError):
        raise TokenInvalidError("bad payload")
    if not isinstance(subject, str) or not subject:
        raise TokenInvalidError("bad subject")

    if expires_at <= time.time():
        raise TokenExpiredError("token expired")
    return subject

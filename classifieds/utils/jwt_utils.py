from __future__ import annotations

import logging
import os
import time

import jwt

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
ACCESS_TOKEN_TTL_SECONDS = 60 * 60 * 24 * 7


def _signing_key() -> str:
    return os.getenv("SECRET_KEY") or "dev-secret-change-me"


def create_access_token(user_id: int, ttl_seconds: int = ACCESS_TOKEN_TTL_SECONDS) -> str:
    """Signed access token for ``user_id``; sellers and viewers use the same kind."""
    issued = int(time.time())
    claims = {"sub": str(int(user_id)), "iat": issued, "exp": issued + int(ttl_seconds), "type": "access"}
    return jwt.encode(claims, _signing_key(), algorithm=ALGORITHM)


def _bearer_token(auth_header: str | None) -> str | None:
    scheme, _, token = (auth_header or "").strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def user_id_from_header(auth_header: str | None) -> int | None:
    """User id from an ``Authorization: Bearer`` header, or ``None`` for anonymous callers."""
    token = _bearer_token(auth_header)
    if token is None:
        return None
    try:
        claims = jwt.decode(token, _signing_key(), algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        logger.info("access_token_expired")
        return None
    except jwt.InvalidTokenError:
        return None
    if claims.get("type", "access") != "access":
        return None
    try:
        return int(claims.get("sub"))
    except (TypeError, ValueError):
        return None

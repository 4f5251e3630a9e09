"""
Caller identity for the HTTP layer.

Credentials are issued elsewhere; this module only verifies a signed JWT and
extracts the opaque user id from its ``sub`` claim. The token may arrive as
``Authorization: Bearer <jwt>`` or in the ``ri_session`` cookie. No token
means an anonymous caller.
"""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
import structlog
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.config import get_settings
from app.core.errors import UnauthenticatedError

log = structlog.get_logger()

SESSION_COOKIE = "ri_session"
CSRF_COOKIE = "ri_csrf"

bearer_scheme = HTTPBearer(auto_error=False)


# ---------------------------------------------------------------------------
# JWT
# ---------------------------------------------------------------------------

def create_jwt(user_id: int, *, expires_delta: timedelta | None = None) -> str:
    """Create a signed session token for ``user_id``."""
    settings = get_settings()
    now = datetime.now(timezone.utc)
    exp = now + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    payload = {
        "sub": str(user_id),
        "iat": now,
        "exp": exp,
        "jti": secrets.token_hex(8),
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_jwt(token: str) -> dict:
    """Decode and verify a JWT. Raises jwt.PyJWTError on failure."""
    settings = get_settings()
    return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])


def caller_id_from_token(token: str) -> int:
    try:
        payload = decode_jwt(token)
        return int(payload["sub"])
    except (jwt.PyJWTError, KeyError, TypeError, ValueError) as exc:
        log.info("auth.invalid_token", error=str(exc))
        raise UnauthenticatedError("Invalid or expired session") from exc


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

async def get_caller_id(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[int]:
    """Opaque caller id, or None for anonymous requests."""
    if credentials is not None:
        return caller_id_from_token(credentials.credentials)

    token = request.cookies.get(SESSION_COOKIE)
    if token:
        return caller_id_from_token(token)
    return None

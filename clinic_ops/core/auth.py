"""Session token verification.

Tokens are issued by the hosted auth service; this module only verifies
them with the shared secret and exposes the caller's identity.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Request
from jose import JWTError, jwt

from clinic_ops.config import Settings, get_settings


@dataclass(frozen=True)
class CurrentUser:
    """Authenticated caller resolved from a session token."""

    id: str
    email: Optional[str]
    is_admin: bool = False


def decode_token(token: str, settings: Optional[Settings] = None) -> dict | None:
    """Decode and validate a JWT. Returns claims dict or None on any error."""
    settings = settings or get_settings()
    if not settings.auth_jwt_secret:
        return None
    try:
        return jwt.decode(
            token,
            settings.auth_jwt_secret,
            algorithms=[settings.auth_jwt_algorithm],
            audience=settings.auth_jwt_audience or None,
        )
    except JWTError:
        return None


def create_access_token(
    subject: str,
    email: Optional[str],
    settings: Optional[Settings] = None,
    expires_minutes: int = 60,
) -> str:
    """Mint a token shaped like the hosted auth service's (used by tests and tooling)."""
    settings = settings or get_settings()
    payload = {
        "sub": subject,
        "email": email,
        "aud": settings.auth_jwt_audience,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=expires_minutes),
    }
    return jwt.encode(payload, settings.auth_jwt_secret, algorithm=settings.auth_jwt_algorithm)


def token_from_request(request: Request, settings: Optional[Settings] = None) -> Optional[str]:
    """Session cookie first, then a Bearer Authorization header."""
    settings = settings or get_settings()
    token = request.cookies.get(settings.auth_cookie_name)
    if token:
        return token
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header[7:]
    return None


def user_from_claims(claims: dict, settings: Optional[Settings] = None) -> Optional[CurrentUser]:
    settings = settings or get_settings()
    subject = claims.get("sub")
    if not subject:
        return None
    email = claims.get("email")
    return CurrentUser(id=str(subject), email=email, is_admin=settings.is_admin_email(email))

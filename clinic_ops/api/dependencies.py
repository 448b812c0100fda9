"""FastAPI dependencies: auth and per-request collaborators."""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Request

from clinic_ops.config import Settings, get_settings
from clinic_ops.core.auth import CurrentUser, decode_token, token_from_request, user_from_claims
from clinic_ops.core.errors import AuthenticationError, AuthorizationError
from clinic_ops.integrations.email import EmailService
from clinic_ops.integrations.practiceq import PracticeQClient
from clinic_ops.llm.base import BaseLLM


async def get_current_user(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> CurrentUser:
    """Resolve the caller from the session cookie or Bearer token, else 401."""
    token = token_from_request(request, settings)
    if token:
        claims = decode_token(token, settings)
        if claims:
            user = user_from_claims(claims, settings)
            if user:
                return user
    raise AuthenticationError("Not authenticated", code="UNAUTHENTICATED")


async def require_admin(
    current_user: CurrentUser = Depends(get_current_user),
) -> CurrentUser:
    """Require the current user's email to be on the admin allow-list."""
    if not current_user.is_admin:
        raise AuthorizationError("Admin access required", code="FORBIDDEN")
    return current_user


def get_email_service(request: Request) -> EmailService:
    return request.app.state.email


def get_practiceq(request: Request) -> Optional[PracticeQClient]:
    return request.app.state.practiceq


def get_llm(request: Request) -> Optional[BaseLLM]:
    return request.app.state.llm


def client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None

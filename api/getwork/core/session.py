from __future__ import annotations

import logging
import re
import time

import jwt
from fastapi import Request, Response

from getwork.core.config import Settings, get_settings
from getwork.services.supabase import (
    AuthServiceError,
    AuthServiceUnavailableError,
    AuthSession,
    SupabaseAuthClient,
    get_supabase_client,
)

logger = logging.getLogger(__name__)

STATIC_PATH_RE = re.compile(r"^/(?:_next/static|_next/image|favicon\.ico)|\.(?:svg|png|jpg|jpeg|gif|webp)$")
REFRESH_COOKIE_MAX_AGE_SECONDS = 60 * 60 * 24 * 30


def is_session_path(path: str) -> bool:
    return STATIC_PATH_RE.search(path) is None


def token_expires_within(token: str, leeway_seconds: int, *, now: float | None = None) -> bool:
    """Read `exp` without verifying the signature; GoTrue verifies the token on use."""
    try:
        claims = jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError:
        return True
    exp = claims.get("exp")
    if not isinstance(exp, (int, float)):
        return True
    current = time.time() if now is None else now
    return exp - current <= leeway_seconds


def set_session_cookies(response: Response, session: AuthSession, settings: Settings) -> None:
    response.set_cookie(
        settings.access_cookie_name,
        session.access_token,
        max_age=session.expires_in,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
        path="/",
    )
    response.set_cookie(
        settings.refresh_cookie_name,
        session.refresh_token,
        max_age=REFRESH_COOKIE_MAX_AGE_SECONDS,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
        path="/",
    )


def clear_session_cookies(response: Response, settings: Settings) -> None:
    for name in (settings.access_cookie_name, settings.refresh_cookie_name, settings.code_verifier_cookie_name):
        response.delete_cookie(name, path="/")


def resolve_supabase_client(request: Request) -> SupabaseAuthClient:
    factory = request.app.dependency_overrides.get(get_supabase_client, get_supabase_client)
    return factory()


async def refresh_session_middleware(request: Request, call_next):
    settings = get_settings()
    refreshed: AuthSession | None = None
    rejected = False

    if is_session_path(request.url.path):
        refresh_token = request.cookies.get(settings.refresh_cookie_name)
        access_token = request.cookies.get(settings.access_cookie_name)
        if refresh_token and (
            not access_token or token_expires_within(access_token, settings.session_refresh_leeway_seconds)
        ):
            try:
                refreshed = await resolve_supabase_client(request).refresh_session(refresh_token)
            except AuthServiceUnavailableError as exc:
                logger.warning("session refresh skipped path=%s reason=%s", request.url.path, exc.message)
            except AuthServiceError as exc:
                logger.info("session refresh rejected path=%s status=%s", request.url.path, exc.status_code)
                rejected = True
            else:
                request.state.access_token = refreshed.access_token

    response = await call_next(request)

    if _response_sets_cookie(response, settings.access_cookie_name):
        return response
    if refreshed is not None:
        set_session_cookies(response, refreshed, settings)
    elif rejected:
        clear_session_cookies(response, settings)
    return response


def _response_sets_cookie(response: Response, name: str) -> bool:
    return any(header.startswith(f"{name}=") for header in response.headers.getlist("set-cookie"))

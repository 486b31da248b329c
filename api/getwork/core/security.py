from typing import Any

from fastapi import Depends, Header, HTTPException, Request, status

from getwork.core.auth import ROLE_SCOPES, Principal, parse_role
from getwork.core.config import Settings, get_settings
from getwork.services.repository import RepositoryUnavailableError, get_repository
from getwork.services.supabase import (
    AuthServiceError,
    AuthServiceUnavailableError,
    SupabaseAuthClient,
    get_supabase_client,
)


async def get_principal(
    request: Request,
    settings: Settings = Depends(get_settings),
    repository=Depends(get_repository),
    supabase: SupabaseAuthClient = Depends(get_supabase_client),
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> Principal:
    token = _extract_token(request, settings, authorization)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return await _build_principal(token=token, repository=repository, supabase=supabase)


async def get_optional_principal(
    request: Request,
    settings: Settings = Depends(get_settings),
    repository=Depends(get_repository),
    supabase: SupabaseAuthClient = Depends(get_supabase_client),
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> Principal | None:
    """Anonymous callers and stale tokens both read as no principal."""
    try:
        token = _extract_token(request, settings, authorization)
        if not token:
            return None
        return await _build_principal(token=token, repository=repository, supabase=supabase)
    except HTTPException as exc:
        if exc.status_code != status.HTTP_401_UNAUTHORIZED:
            raise
        return None


async def resolve_role(repository, user: dict[str, Any]) -> str | None:
    """Profile registry first, then the role captured in the session metadata."""
    user_id = user.get("id")
    if isinstance(user_id, str) and user_id:
        registered = parse_role(await repository.resolve_role(user_id))
        if registered:
            return registered

    for key in ("user_metadata", "app_metadata"):
        metadata = user.get(key)
        if isinstance(metadata, dict):
            role = parse_role(metadata.get("role"))
            if role:
                return role
    return None


async def _build_principal(*, token: str, repository, supabase: SupabaseAuthClient) -> Principal:
    user = await _fetch_supabase_user(supabase=supabase, token=token)
    user_id = user.get("id")
    if not isinstance(user_id, str) or not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid bearer token")

    try:
        role = await resolve_role(repository, user)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    metadata = user.get("user_metadata")
    email = user.get("email")
    return Principal(
        subject=user_id,
        role=role,
        scopes=set(ROLE_SCOPES[role]),
        email=email if isinstance(email, str) else None,
        metadata=metadata if isinstance(metadata, dict) else {},
    )


async def _fetch_supabase_user(*, supabase: SupabaseAuthClient, token: str) -> dict[str, Any]:
    try:
        return await supabase.get_user(token)
    except AuthServiceUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=exc.message) from exc
    except AuthServiceError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid bearer token") from exc


def _extract_token(request: Request, settings: Settings, authorization: str | None) -> str | None:
    if authorization:
        if not authorization.lower().startswith("bearer "):
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="auth requires bearer token")
        token = authorization.split(" ", maxsplit=1)[1].strip()
        if not token:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="empty bearer token")
        return token

    refreshed = getattr(request.state, "access_token", None)
    if refreshed:
        return refreshed
    return request.cookies.get(settings.access_cookie_name) or None


async def get_access_token(
    request: Request,
    settings: Settings = Depends(get_settings),
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> str:
    token = _extract_token(request, settings, authorization)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return token

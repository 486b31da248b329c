import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from fastapi.responses import RedirectResponse

from getwork.core.auth import dashboard_path
from getwork.core.config import Settings, get_settings
from getwork.core.normalize import coerce_age, normalize_phone, split_skills
from getwork.core.security import get_access_token, get_principal, resolve_role
from getwork.core.session import clear_session_cookies, set_session_cookies
from getwork.schemas.auth import LoginRequest, MessageOut, PasswordUpdateRequest, RegisterRequest, SessionOut
from getwork.services.repository import RepositoryUnavailableError, get_repository
from getwork.services.supabase import (
    AuthServiceError,
    AuthServiceUnavailableError,
    SupabaseAuthClient,
    get_supabase_client,
)

router = APIRouter()
logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


@router.get("/callback")
async def auth_callback(
    request: Request,
    code: str | None = Query(default=None),
    settings: Settings = Depends(get_settings),
    repository=Depends(get_repository),
    supabase: SupabaseAuthClient = Depends(get_supabase_client),
) -> RedirectResponse:
    if not code:
        return RedirectResponse("/login", status_code=status.HTTP_303_SEE_OTHER)

    verifier = request.cookies.get(settings.code_verifier_cookie_name)
    try:
        session = await supabase.exchange_code_for_session(code, verifier)
    except AuthServiceError as exc:
        logger.warning("auth code exchange failed status=%s reason=%s", exc.status_code, exc.message)
        return RedirectResponse("/login", status_code=status.HTTP_303_SEE_OTHER)

    role = await _resolve_role_or_none(repository, session.user)
    response = RedirectResponse(dashboard_path(role), status_code=status.HTTP_303_SEE_OTHER)
    set_session_cookies(response, session, settings)
    response.delete_cookie(settings.code_verifier_cookie_name, path="/")
    return response


@router.post("/register", response_model=MessageOut, status_code=status.HTTP_201_CREATED)
async def register(
    payload: RegisterRequest,
    supabase: SupabaseAuthClient = Depends(get_supabase_client),
) -> MessageOut:
    metadata = {
        "full_name": payload.name,
        "phone": normalize_phone(payload.phone),
        "role": payload.role,
    }
    if payload.location:
        metadata["location"] = payload.location
    age = coerce_age(payload.age)
    if age is not None:
        metadata["age"] = age
    skills = split_skills(payload.skills)
    if skills:
        metadata["skills"] = skills

    try:
        user = await supabase.sign_up(payload.email, payload.password, metadata)
    except AuthServiceUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=exc.message) from exc
    except AuthServiceError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message) from exc

    logger.info("identity registered user_id=%s role=%s", user.get("id"), payload.role)
    return MessageOut(message="Check your email to confirm your account.")


@router.post("/login", response_model=SessionOut)
async def login(
    payload: LoginRequest,
    response: Response,
    settings: Settings = Depends(get_settings),
    repository=Depends(get_repository),
    supabase: SupabaseAuthClient = Depends(get_supabase_client),
) -> SessionOut:
    try:
        session = await supabase.sign_in_with_password(payload.email, payload.password)
    except AuthServiceUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=exc.message) from exc
    except AuthServiceError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=exc.message) from exc

    if not session.user.get("email_confirmed_at"):
        await _sign_out_quietly(supabase, session.access_token)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Please verify your email before logging in.",
        )

    role = await _resolve_role_or_none(repository, session.user)
    set_session_cookies(response, session, settings)
    return SessionOut(
        user_id=session.user_id or "",
        email=session.user.get("email"),
        role=role,
        redirect_to=dashboard_path(role),
    )


@router.post("/logout", response_model=MessageOut)
async def logout(
    request: Request,
    response: Response,
    settings: Settings = Depends(get_settings),
    supabase: SupabaseAuthClient = Depends(get_supabase_client),
) -> MessageOut:
    token = getattr(request.state, "access_token", None) or request.cookies.get(settings.access_cookie_name)
    if token:
        await _sign_out_quietly(supabase, token)
    clear_session_cookies(response, settings)
    return MessageOut(message="Signed out")


@router.post("/password", response_model=MessageOut)
async def update_password(
    payload: PasswordUpdateRequest,
    response: Response,
    token: str = Depends(get_access_token),
    settings: Settings = Depends(get_settings),
    supabase: SupabaseAuthClient = Depends(get_supabase_client),
) -> MessageOut:
    if len(payload.password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
        )
    if payload.password != payload.confirm:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Passwords do not match")

    try:
        await supabase.update_password(token, payload.password)
    except AuthServiceUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=exc.message) from exc
    except AuthServiceError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message) from exc

    await _sign_out_quietly(supabase, token)
    clear_session_cookies(response, settings)
    return MessageOut(message="Password updated. Please log in again.")


@router.get("/session", response_model=SessionOut)
async def current_session(principal=Depends(get_principal)) -> SessionOut:
    return SessionOut(
        user_id=principal.subject,
        email=principal.email,
        role=principal.role,
        redirect_to=dashboard_path(principal.role),
    )


async def _resolve_role_or_none(repository, user: dict) -> str | None:
    try:
        return await resolve_role(repository, user)
    except RepositoryUnavailableError as exc:
        logger.warning("role lookup skipped user_id=%s reason=%s", user.get("id"), exc)
        return None


async def _sign_out_quietly(supabase: SupabaseAuthClient, token: str) -> None:
    try:
        await supabase.sign_out(token)
    except AuthServiceError as exc:
        logger.warning("sign out failed status=%s reason=%s", exc.status_code, exc.message)

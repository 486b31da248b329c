from fastapi import APIRouter, Depends, HTTPException, status

from getwork.core.security import get_principal
from getwork.schemas.jobs import JobOut
from getwork.schemas.referrals import (
    ReferralCreateRequest,
    ReferralDashboardOut,
    ReferralOut,
    ReferralPatchRequest,
    ReferralStatsOut,
    ReferredWorkerCreatedOut,
    ReferredWorkerCreateRequest,
)
from getwork.services.provisioning import load_or_create_profile, require_profile_id
from getwork.services.repository import (
    RepositoryConflictError,
    RepositoryNotFoundError,
    RepositoryUnavailableError,
    RepositoryValidationError,
    get_repository,
)
from getwork.services.rewards import compute_referral_stats
from getwork.services.supabase import AuthServiceUnavailableError, SupabaseAuthClient, get_supabase_client
from getwork.services.workflows import WorkflowStepError, create_referred_worker, submit_referral

router = APIRouter()

DASHBOARD_LISTING_LIMIT = 100


@router.get("/referral", response_model=ReferralDashboardOut)
async def referral_dashboard(
    principal=Depends(get_principal),
    repository=Depends(get_repository),
) -> ReferralDashboardOut:
    if principal.role not in {None, "referral", "worker"}:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")

    role = principal.role or "referral"
    try:
        profile = await load_or_create_profile(repository, principal, role)
        jobs = await repository.list_jobs(limit=DASHBOARD_LISTING_LIMIT, offset=0)
        stats = None
        if role == "referral":
            stats = ReferralStatsOut(**compute_referral_stats(await repository.list_referral_statuses(principal.subject)))
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc

    return ReferralDashboardOut(
        name=profile.get("name") or "",
        role=role,
        jobs=[JobOut(**row) for row in jobs],
        stats=stats,
    )


@router.post("/referrals", response_model=ReferralOut, status_code=status.HTTP_201_CREATED)
async def create_referral(
    payload: ReferralCreateRequest,
    principal=Depends(get_principal),
    repository=Depends(get_repository),
) -> ReferralOut:
    try:
        principal.require_scopes({"referrals:write"})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        row = await submit_referral(repository, partner_id=principal.subject, payload=payload)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    return ReferralOut(**row)


@router.get("/referrals", response_model=list[ReferralOut])
async def list_referrals(
    principal=Depends(get_principal),
    repository=Depends(get_repository),
) -> list[ReferralOut]:
    try:
        principal.require_scopes({"referrals:read"})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        rows = await repository.list_referrals(principal.subject)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return [ReferralOut(**row) for row in rows]


@router.patch("/referrals/{referral_id}", response_model=ReferralOut)
async def patch_referral(
    referral_id: str,
    payload: ReferralPatchRequest,
    principal=Depends(get_principal),
    repository=Depends(get_repository),
) -> ReferralOut:
    try:
        principal.require_scopes({"referrals:review"})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        org_id = await require_profile_id(repository, "organization", principal.subject)
        referral = await repository.get_referral(referral_id)
        if referral["org_id"] != org_id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="referral belongs to another organization")
        row = await repository.update_referral_status(referral_id=referral_id, status=payload.status)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc

    return ReferralOut(**row)


@router.post("/referrals/create-worker", response_model=ReferredWorkerCreatedOut, status_code=status.HTTP_201_CREATED)
async def create_worker_for_referral(
    payload: ReferredWorkerCreateRequest,
    principal=Depends(get_principal),
    repository=Depends(get_repository),
    supabase: SupabaseAuthClient = Depends(get_supabase_client),
) -> ReferredWorkerCreatedOut:
    try:
        principal.require_scopes({"referrals:write"})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        user_id = await create_referred_worker(repository, supabase, partner_id=principal.subject, payload=payload)
    except AuthServiceUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=exc.message) from exc
    except WorkflowStepError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc

    return ReferredWorkerCreatedOut(user_id=user_id)

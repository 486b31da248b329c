from fastapi import APIRouter, Depends, HTTPException, status

from getwork.core.auth import Principal, Role
from getwork.core.security import get_principal
from getwork.schemas.profiles import OrganizationOut, ReferralPartnerOut, WorkerOut, WorkerPatchRequest
from getwork.services.provisioning import load_or_create_profile
from getwork.services.repository import (
    RepositoryConflictError,
    RepositoryNotFoundError,
    RepositoryUnavailableError,
    RepositoryValidationError,
    get_repository,
)

router = APIRouter()


async def _dashboard_profile(repository, principal: Principal, role: Role) -> dict:
    try:
        principal.require_role(role)
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        return await load_or_create_profile(repository, principal, role.value)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc


@router.get("/worker", response_model=WorkerOut)
async def get_worker_profile(
    principal=Depends(get_principal),
    repository=Depends(get_repository),
) -> WorkerOut:
    row = await _dashboard_profile(repository, principal, Role.WORKER)
    return WorkerOut(**row)


@router.patch("/worker", response_model=WorkerOut)
async def patch_worker_profile(
    payload: WorkerPatchRequest,
    principal=Depends(get_principal),
    repository=Depends(get_repository),
) -> WorkerOut:
    try:
        principal.require_role(Role.WORKER)
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    fields = payload.model_dump(exclude_unset=True)
    try:
        row = await repository.update_worker_profile(principal.subject, fields)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc

    return WorkerOut(**row)


@router.get("/organization", response_model=OrganizationOut)
async def get_organization_profile(
    principal=Depends(get_principal),
    repository=Depends(get_repository),
) -> OrganizationOut:
    row = await _dashboard_profile(repository, principal, Role.ORGANIZATION)
    return OrganizationOut(**row)


@router.get("/referral/profile", response_model=ReferralPartnerOut)
async def get_referral_profile(
    principal=Depends(get_principal),
    repository=Depends(get_repository),
) -> ReferralPartnerOut:
    row = await _dashboard_profile(repository, principal, Role.REFERRAL)
    return ReferralPartnerOut(**row)

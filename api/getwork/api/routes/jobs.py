from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from getwork.core.security import get_optional_principal, get_principal
from getwork.schemas.applications import ApplicationOut
from getwork.schemas.jobs import JobCreateRequest, JobDetailOut, JobOut, JobPatchRequest
from getwork.services.provisioning import require_profile_id
from getwork.services.repository import (
    RepositoryConflictError,
    RepositoryForbiddenError,
    RepositoryNotFoundError,
    RepositoryUnavailableError,
    RepositoryValidationError,
    get_repository,
)
from getwork.services.workflows import apply_to_job

router = APIRouter()


@router.get("", response_model=list[JobOut])
async def list_jobs(
    repository=Depends(get_repository),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    category: str | None = Query(default=None),
    location: str | None = Query(default=None),
    org_id: str | None = Query(default=None),
) -> list[JobOut]:
    try:
        rows = await repository.list_jobs(
            limit=limit,
            offset=offset,
            category=category,
            location=location,
            org_id=org_id,
        )
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return [JobOut(**row) for row in rows]


@router.get("/{job_id}", response_model=JobDetailOut)
async def get_job(
    job_id: str,
    principal=Depends(get_optional_principal),
    repository=Depends(get_repository),
) -> JobDetailOut:
    try:
        row = await repository.get_job(job_id)
        has_applied = False
        if principal is not None and principal.role == "worker":
            has_applied = await repository.has_applied(job_id=job_id, worker_id=principal.subject)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    return JobDetailOut(**row, has_applied=has_applied)


@router.post("", response_model=JobOut, status_code=status.HTTP_201_CREATED)
async def create_job(
    payload: JobCreateRequest,
    principal=Depends(get_principal),
    repository=Depends(get_repository),
) -> JobOut:
    try:
        principal.require_scopes({"jobs:write"})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        org_id = await require_profile_id(repository, "organization", principal.subject)
        row = await repository.create_job(org_id=org_id, fields=payload.model_dump())
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc

    return JobOut(**row)


@router.patch("/{job_id}", response_model=JobOut)
async def patch_job(
    job_id: str,
    payload: JobPatchRequest,
    principal=Depends(get_principal),
    repository=Depends(get_repository),
) -> JobOut:
    try:
        principal.require_scopes({"jobs:write"})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        org_id = await require_profile_id(repository, "organization", principal.subject)
        row = await repository.update_job(job_id=job_id, org_id=org_id, fields=payload.model_dump(exclude_unset=True))
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryForbiddenError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc

    return JobOut(**row)


@router.delete("/{job_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_job(
    job_id: str,
    principal=Depends(get_principal),
    repository=Depends(get_repository),
) -> Response:
    try:
        principal.require_scopes({"jobs:write"})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        org_id = await require_profile_id(repository, "organization", principal.subject)
        await repository.delete_job(job_id=job_id, org_id=org_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryForbiddenError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    except RepositoryConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc

    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{job_id}/apply", response_model=ApplicationOut, status_code=status.HTTP_201_CREATED)
async def apply(
    job_id: str,
    principal=Depends(get_principal),
    repository=Depends(get_repository),
) -> ApplicationOut:
    try:
        principal.require_scopes({"applications:write"})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        job = await repository.get_job(job_id)
        row = await apply_to_job(repository, job=job, worker_id=principal.subject)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc

    return ApplicationOut(**row)

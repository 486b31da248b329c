from fastapi import APIRouter, Depends, HTTPException, status

from getwork.core.security import get_principal
from getwork.schemas.applications import ApplicationOut, ApplicationPatchRequest
from getwork.services.provisioning import require_profile_id
from getwork.services.repository import (
    RepositoryNotFoundError,
    RepositoryUnavailableError,
    RepositoryValidationError,
    get_repository,
)
from getwork.services.workflows import decide_application

router = APIRouter()


@router.get("", response_model=list[ApplicationOut])
async def list_applications(
    principal=Depends(get_principal),
    repository=Depends(get_repository),
) -> list[ApplicationOut]:
    """Workers see their own applications; organizations see the ones sent to their jobs."""
    try:
        if principal.role == "worker":
            rows = await repository.list_worker_applications(principal.subject)
        elif principal.role == "organization":
            org_id = await require_profile_id(repository, "organization", principal.subject)
            rows = await repository.list_organization_applications(org_id)
        else:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    return [ApplicationOut(**row) for row in rows]


@router.patch("/{application_id}", response_model=ApplicationOut)
async def patch_application(
    application_id: str,
    payload: ApplicationPatchRequest,
    principal=Depends(get_principal),
    repository=Depends(get_repository),
) -> ApplicationOut:
    try:
        principal.require_scopes({"applications:review"})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        org_id = await require_profile_id(repository, "organization", principal.subject)
        application = await repository.get_application(application_id)
        if application["org_id"] != org_id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="application belongs to another organization")
        row = await decide_application(repository, application=application, status=payload.status)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc

    return ApplicationOut(**row)

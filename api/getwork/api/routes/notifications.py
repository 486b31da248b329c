from fastapi import APIRouter, Depends, HTTPException, Query, status

from getwork.core.config import Settings, get_settings
from getwork.core.security import get_principal
from getwork.schemas.notifications import InboxOut, NotificationOut, NotificationPatchRequest
from getwork.services.provisioning import require_profile_id
from getwork.services.repository import (
    RepositoryForbiddenError,
    RepositoryNotFoundError,
    RepositoryUnavailableError,
    RepositoryValidationError,
    get_repository,
)
from getwork.services.workflows import act_on_notification

router = APIRouter()


@router.get("", response_model=InboxOut)
async def list_notifications(
    principal=Depends(get_principal),
    repository=Depends(get_repository),
    settings: Settings = Depends(get_settings),
    unread_only: bool = Query(default=False),
    limit: int = Query(default=50, ge=1, le=200),
) -> InboxOut:
    try:
        principal.require_scopes({"inbox:read"})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        rows = await repository.list_notifications(
            recipient_id=principal.subject,
            unread_only=unread_only,
            limit=limit,
        )
        unread_count = await repository.count_unread_notifications(principal.subject)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return InboxOut(
        notifications=[NotificationOut(**row) for row in rows],
        unread_count=unread_count,
        poll_interval_seconds=settings.inbox_poll_interval_seconds,
    )


@router.patch("/{notification_id}", response_model=NotificationOut)
async def patch_notification(
    notification_id: str,
    payload: NotificationPatchRequest,
    principal=Depends(get_principal),
    repository=Depends(get_repository),
) -> NotificationOut:
    try:
        principal.require_scopes({"inbox:write"})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        notification = await repository.get_notification(notification_id)
        if notification["recipient_id"] != principal.subject:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="notification not found")
        row = await repository.set_notification_read(notification_id=notification_id, read=payload.read)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    return NotificationOut(**row)


@router.post("/{notification_id}/accept", response_model=NotificationOut)
async def accept_from_notification(
    notification_id: str,
    principal=Depends(get_principal),
    repository=Depends(get_repository),
) -> NotificationOut:
    return await _act(notification_id, "accepted", principal, repository)


@router.post("/{notification_id}/reject", response_model=NotificationOut)
async def reject_from_notification(
    notification_id: str,
    principal=Depends(get_principal),
    repository=Depends(get_repository),
) -> NotificationOut:
    return await _act(notification_id, "rejected", principal, repository)


async def _act(notification_id: str, decision: str, principal, repository) -> NotificationOut:
    try:
        principal.require_scopes({"applications:review"})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        notification = await repository.get_notification(notification_id)
        if notification["recipient_id"] != principal.subject:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="notification not found")
        org_id = await require_profile_id(repository, "organization", principal.subject)
        row = await act_on_notification(repository, notification=notification, org_id=org_id, status=decision)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryForbiddenError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc

    return NotificationOut(**row)

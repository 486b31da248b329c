from typing import Any

from fastapi import APIRouter, Body, Depends, Header, HTTPException, status
from fastapi.responses import JSONResponse

from getwork.schemas.auth import BackendEnvelope
from getwork.services.recovery import (
    PROXIED_PATHS,
    RecoveryClient,
    RecoveryServiceUnavailableError,
    get_recovery_client,
)

router = APIRouter()


@router.post("/{endpoint:path}", response_model=BackendEnvelope)
async def forward(
    endpoint: str,
    payload: dict[str, Any] | None = Body(default=None),
    client: RecoveryClient = Depends(get_recovery_client),
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> JSONResponse:
    if endpoint not in PROXIED_PATHS:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="unknown backend endpoint")

    try:
        proxied = await client.forward(endpoint, payload or {}, authorization=authorization)
    except RecoveryServiceUnavailableError as exc:
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"success": False, "message": str(exc)},
        )

    return JSONResponse(status_code=proxied.status_code, content=proxied.payload)

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Any

import httpx

from getwork.core.config import get_settings

PROXIED_PATHS = {
    "send-otp": "/send-otp",
    "verify-otp": "/verify-otp",
    "reset-password": "/reset-password",
    "auth/register": "/auth/register",
    "auth/profile": "/auth/profile",
}


class RecoveryServiceUnavailableError(Exception):
    """Raised when the legacy backend cannot be reached."""


@dataclass(slots=True)
class ProxiedResponse:
    status_code: int
    payload: dict[str, Any]


class RecoveryClient:
    """Forwards OTP recovery and legacy registration calls to the REST backend."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    async def forward(
        self,
        endpoint: str,
        payload: dict[str, Any],
        *,
        authorization: str | None = None,
    ) -> ProxiedResponse:
        path = PROXIED_PATHS.get(endpoint)
        if path is None:
            raise KeyError(endpoint)

        headers = {"Content-Type": "application/json"}
        if authorization:
            headers["Authorization"] = authorization

        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self.transport) as client:
                response = await client.post(f"{self.base_url}{path}", json=payload, headers=headers)
        except httpx.HTTPError as exc:
            raise RecoveryServiceUnavailableError("Server not reachable") from exc

        try:
            body = response.json()
        except ValueError:
            body = {"success": False, "message": response.text or None}
        if not isinstance(body, dict):
            body = {"success": False, "message": None}
        return ProxiedResponse(status_code=response.status_code, payload=body)


@lru_cache
def get_recovery_client() -> RecoveryClient:
    settings = get_settings()
    return RecoveryClient(
        base_url=settings.recovery_api_base_url,
        timeout_seconds=settings.recovery_timeout_seconds,
    )

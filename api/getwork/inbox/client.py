from __future__ import annotations

from typing import Any

import httpx


class InboxClient:
    """Reads the caller's notifications from the GetWork API with a bearer token."""

    def __init__(
        self,
        base_url: str,
        access_token: str,
        *,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.headers = {"Authorization": f"Bearer {access_token}"}
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    async def get_inbox(self, *, unread_only: bool = True, limit: int = 50) -> dict[str, Any]:
        async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self.transport) as client:
            response = await client.get(
                f"{self.base_url}/notifications",
                params={"unread_only": str(unread_only).lower(), "limit": limit},
                headers=self.headers,
            )
            response.raise_for_status()
            return response.json()

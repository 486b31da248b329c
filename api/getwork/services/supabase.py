from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any

import httpx

from getwork.core.config import get_settings


class AuthServiceError(Exception):
    """Raised when GoTrue rejects a request."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class AuthServiceUnavailableError(AuthServiceError):
    """Raised when GoTrue is unreachable or not configured."""

    def __init__(self, message: str) -> None:
        super().__init__(503, message)


@dataclass(slots=True)
class AuthSession:
    access_token: str
    refresh_token: str
    expires_in: int
    user: dict[str, Any] = field(default_factory=dict)

    @property
    def user_id(self) -> str | None:
        user_id = self.user.get("id")
        return user_id if isinstance(user_id, str) and user_id else None


class SupabaseAuthClient:
    def __init__(
        self,
        base_url: str | None,
        anon_key: str | None,
        *,
        service_role_key: str | None = None,
        timeout_seconds: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/") if base_url else None
        self.anon_key = anon_key
        self.service_role_key = service_role_key
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    async def get_user(self, access_token: str) -> dict[str, Any]:
        return await self._request("GET", "/auth/v1/user", bearer=access_token)

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        payload = await self._request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        return self._session_from_payload(payload)

    async def refresh_session(self, refresh_token: str) -> AuthSession:
        payload = await self._request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": refresh_token},
        )
        return self._session_from_payload(payload)

    async def exchange_code_for_session(self, auth_code: str, code_verifier: str | None) -> AuthSession:
        payload = await self._request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "pkce"},
            json={"auth_code": auth_code, "code_verifier": code_verifier or ""},
        )
        return self._session_from_payload(payload)

    async def sign_up(self, email: str, password: str, metadata: dict[str, Any]) -> dict[str, Any]:
        payload = await self._request(
            "POST",
            "/auth/v1/signup",
            json={"email": email, "password": password, "data": metadata},
        )
        # Without email confirmation GoTrue answers with a session wrapping the user.
        user = payload.get("user")
        return user if isinstance(user, dict) else payload

    async def sign_out(self, access_token: str) -> None:
        await self._request("POST", "/auth/v1/logout", bearer=access_token)

    async def update_password(self, access_token: str, password: str) -> dict[str, Any]:
        return await self._request("PUT", "/auth/v1/user", bearer=access_token, json={"password": password})

    async def admin_create_user(
        self,
        *,
        email: str,
        password: str,
        user_metadata: dict[str, Any],
        email_confirm: bool = True,
    ) -> dict[str, Any]:
        if not self.service_role_key:
            raise AuthServiceUnavailableError("Supabase service role key is not configured")
        return await self._request(
            "POST",
            "/auth/v1/admin/users",
            bearer=self.service_role_key,
            api_key=self.service_role_key,
            json={
                "email": email,
                "password": password,
                "email_confirm": email_confirm,
                "user_metadata": user_metadata,
            },
        )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        bearer: str | None = None,
        api_key: str | None = None,
        params: dict[str, str] | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        if not self.base_url or not self.anon_key:
            raise AuthServiceUnavailableError("Supabase auth is not configured")

        headers = {"apikey": api_key or self.anon_key}
        if bearer:
            headers["Authorization"] = f"Bearer {bearer}"

        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self.transport) as client:
                response = await client.request(method, f"{self.base_url}{path}", headers=headers, params=params, json=json)
        except httpx.HTTPError as exc:  # pragma: no cover - network dependent
            raise AuthServiceUnavailableError("Supabase auth unavailable") from exc

        if response.status_code >= 500:
            raise AuthServiceUnavailableError("Supabase auth request failed")
        if response.status_code >= 400:
            raise AuthServiceError(response.status_code, self._error_message(response))
        if response.status_code == 204 or not response.content:
            return {}
        return response.json()

    @staticmethod
    def _session_from_payload(payload: dict[str, Any]) -> AuthSession:
        access_token = payload.get("access_token")
        refresh_token = payload.get("refresh_token")
        if not isinstance(access_token, str) or not isinstance(refresh_token, str):
            raise AuthServiceError(401, "session response is missing tokens")
        user = payload.get("user")
        return AuthSession(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=int(payload.get("expires_in") or 3600),
            user=user if isinstance(user, dict) else {},
        )

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            payload = response.json()
        except ValueError:
            return response.text or "Supabase auth request rejected"
        if isinstance(payload, dict):
            for key in ("msg", "error_description", "message", "error"):
                value = payload.get(key)
                if isinstance(value, str) and value:
                    return value
        return "Supabase auth request rejected"


@lru_cache
def get_supabase_client() -> SupabaseAuthClient:
    settings = get_settings()
    return SupabaseAuthClient(
        base_url=settings.supabase_url,
        anon_key=settings.supabase_anon_key,
        service_role_key=settings.supabase_service_role_key,
        timeout_seconds=settings.auth_timeout_seconds,
    )

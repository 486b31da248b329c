#!/usr/bin/env python3
"""Local stand-in for the GoTrue endpoints the GetWork API calls."""

from __future__ import annotations

import argparse
import json
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import parse_qs, urlsplit

USERS_BY_TOKEN: dict[str, dict[str, object]] = {
    "worker-token": {
        "id": "11111111-1111-1111-1111-111111111111",
        "email": "worker@example.com",
        "email_confirmed_at": "2024-01-01T00:00:00Z",
        "app_metadata": {},
        "user_metadata": {"role": "worker", "full_name": "Asha Worker", "phone": "0712345678"},
    },
    "organization-token": {
        "id": "22222222-2222-2222-2222-222222222222",
        "email": "org@example.com",
        "email_confirmed_at": "2024-01-01T00:00:00Z",
        "app_metadata": {},
        "user_metadata": {"role": "organization", "full_name": "Acme Builders"},
    },
    "referral-token": {
        "id": "33333333-3333-3333-3333-333333333333",
        "email": "scout@example.com",
        "email_confirmed_at": "2024-01-01T00:00:00Z",
        "app_metadata": {},
        "user_metadata": {"role": "referral", "full_name": "Ravi Scout"},
    },
}
MOCK_PASSWORD = "password"


def _user_payload_for_token(token: str) -> dict[str, object] | None:
    return USERS_BY_TOKEN.get(token)


def _session_payload(token: str) -> dict[str, object]:
    return {
        "access_token": token,
        "refresh_token": f"refresh:{token}",
        "expires_in": 3600,
        "token_type": "bearer",
        "user": USERS_BY_TOKEN[token],
    }


def _token_for_email(email: object) -> str | None:
    for token, user in USERS_BY_TOKEN.items():
        if user["email"] == email:
            return token
    return None


class MockSupabaseHandler(BaseHTTPRequestHandler):
    server_version = "MockSupabase/1.0"

    def do_GET(self) -> None:  # noqa: N802 - stdlib handler signature
        if self.path == "/healthz":
            self._write_json(HTTPStatus.OK, {"status": "ok"})
            return

        if self.path != "/auth/v1/user":
            self._write_json(HTTPStatus.NOT_FOUND, {"msg": "not found"})
            return

        user = self._authorized_user()
        if user is None:
            self._write_json(HTTPStatus.UNAUTHORIZED, {"msg": "invalid token"})
            return

        self._write_json(HTTPStatus.OK, user)

    def do_POST(self) -> None:  # noqa: N802 - stdlib handler signature
        url = urlsplit(self.path)
        body = self._read_json()

        if url.path == "/auth/v1/logout":
            self.send_response(HTTPStatus.NO_CONTENT.value)
            self.end_headers()
            return

        if url.path != "/auth/v1/token":
            self._write_json(HTTPStatus.NOT_FOUND, {"msg": "not found"})
            return

        grant_type = parse_qs(url.query).get("grant_type", [""])[0]
        token: str | None = None
        if grant_type == "password" and body.get("password") == MOCK_PASSWORD:
            token = _token_for_email(body.get("email"))
        elif grant_type == "refresh_token":
            refresh = str(body.get("refresh_token", ""))
            candidate = refresh.removeprefix("refresh:")
            token = candidate if candidate in USERS_BY_TOKEN else None

        if token is None:
            self._write_json(HTTPStatus.BAD_REQUEST, {"error_description": "Invalid login credentials"})
            return
        self._write_json(HTTPStatus.OK, _session_payload(token))

    def log_message(self, _: str, *args: object) -> None:
        if args:
            print("mock-supabase:", *args)

    def _authorized_user(self) -> dict[str, object] | None:
        authorization = self.headers.get("Authorization", "")
        if not authorization.lower().startswith("bearer "):
            return None
        return _user_payload_for_token(authorization.split(" ", maxsplit=1)[1].strip())

    def _read_json(self) -> dict[str, object]:
        length = int(self.headers.get("Content-Length") or 0)
        if not length:
            return {}
        try:
            payload = json.loads(self.rfile.read(length))
        except ValueError:
            return {}
        return payload if isinstance(payload, dict) else {}

    def _write_json(self, status: HTTPStatus, payload: dict[str, object]) -> None:
        raw = json.dumps(payload).encode("utf-8")
        self.send_response(status.value)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(raw)))
        self.end_headers()
        self.wfile.write(raw)


def main() -> None:
    parser = argparse.ArgumentParser(description="Mock Supabase GoTrue endpoints for local runs.")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=54321)
    args = parser.parse_args()

    server = ThreadingHTTPServer((args.host, args.port), MockSupabaseHandler)
    print(f"mock-supabase listening on http://{args.host}:{args.port}", flush=True)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.server_close()


if __name__ == "__main__":
    main()

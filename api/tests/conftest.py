from __future__ import annotations

from datetime import datetime, timedelta, timezone
import itertools
from typing import Any
import uuid

import pytest
from fastapi.testclient import TestClient

import getwork.core.security as security
from getwork.core.config import get_settings
from getwork.main import app
from getwork.services.repository import (
    APPLICATION_STATUSES,
    NOTIFICATION_ACTION_STATUSES,
    PROFILE_COLUMNS,
    REFERRAL_STATUSES,
    RepositoryConflictError,
    RepositoryError,
    RepositoryForbiddenError,
    RepositoryNotFoundError,
    RepositoryValidationError,
    get_repository,
)

WORKER_USER: dict[str, Any] = {
    "id": "11111111-1111-1111-1111-111111111111",
    "email": "asha@example.com",
    "email_confirmed_at": "2024-01-01T00:00:00Z",
    "app_metadata": {},
    "user_metadata": {"role": "worker", "full_name": "Asha", "phone": "0712345678", "skills": "masonry, painting"},
}
ORGANIZATION_USER: dict[str, Any] = {
    "id": "22222222-2222-2222-2222-222222222222",
    "email": "hr@acme.example",
    "email_confirmed_at": "2024-01-01T00:00:00Z",
    "app_metadata": {},
    "user_metadata": {"role": "organization", "full_name": "Acme Builders", "phone": "0800111222"},
}
OTHER_ORGANIZATION_USER: dict[str, Any] = {
    "id": "44444444-4444-4444-4444-444444444444",
    "email": "jobs@other.example",
    "email_confirmed_at": "2024-01-01T00:00:00Z",
    "app_metadata": {},
    "user_metadata": {"role": "organization", "full_name": "Other Co"},
}
REFERRAL_USER: dict[str, Any] = {
    "id": "33333333-3333-3333-3333-333333333333",
    "email": "ravi@example.com",
    "email_confirmed_at": "2024-01-01T00:00:00Z",
    "app_metadata": {},
    "user_metadata": {"role": "referral", "full_name": "Ravi"},
}
ROLELESS_USER: dict[str, Any] = {
    "id": "55555555-5555-5555-5555-555555555555",
    "email": "new@example.com",
    "email_confirmed_at": "2024-01-01T00:00:00Z",
    "app_metadata": {},
    "user_metadata": {},
}

AUTH_HEADERS = {"Authorization": "Bearer test-token"}


class FakeRepository:
    """In-memory stand-in mirroring the Postgres repository's contract."""

    def __init__(self) -> None:
        self._clock = itertools.count()
        self._base = datetime(2024, 1, 1, tzinfo=timezone.utc)
        self.roles: dict[str, str] = {}
        self.profiles: dict[tuple[str, str], dict[str, Any]] = {}
        self.jobs: dict[str, dict[str, Any]] = {}
        self.applications: list[dict[str, Any]] = []
        self.notifications: list[dict[str, Any]] = []
        self.referrals: list[dict[str, Any]] = []
        self.failures: dict[str, RepositoryError] = {}
        self.calls: list[str] = []

    # seeding helpers

    def add_profile(self, role: str, user_id: str, **fields: Any) -> dict[str, Any]:
        self.roles[user_id] = role
        row = self._profile_row(role, user_id, fields)
        self.profiles[(role, user_id)] = row
        return row

    def add_job(self, org_user_id: str, **fields: Any) -> dict[str, Any]:
        org = self.profiles[("organization", org_user_id)]
        now = self._now()
        job = {
            "id": str(uuid.uuid4()),
            "org_id": org["id"],
            "title": fields.get("title", "Site Helper"),
            "description": fields.get("description"),
            "salary_range": fields.get("salary_range"),
            "location": fields.get("location"),
            "category": fields.get("category"),
            "created_at": now,
            "updated_at": now,
        }
        self.jobs[job["id"]] = job
        return self._job_view(job)

    def fail(self, method: str, error: RepositoryError | None = None) -> None:
        self.failures[method] = error or RepositoryError(f"{method} failed")

    # profiles

    async def close(self) -> None:
        return None

    async def resolve_role(self, user_id: str) -> str | None:
        return self.roles.get(user_id)

    async def get_profile(self, role: str, user_id: str) -> dict[str, Any] | None:
        row = self.profiles.get((role, user_id))
        return dict(row) if row else None

    async def ensure_profile(self, role: str, user_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        self._check("ensure_profile")
        if role not in PROFILE_COLUMNS:
            raise RepositoryValidationError(f"unknown profile role: {role}")
        if not (fields.get("name") or "").strip() and role != "referral":
            raise RepositoryValidationError("profile name must be a non-empty string")
        registered = self.roles.setdefault(user_id, role)
        if registered != role:
            raise RepositoryConflictError(f"identity already has a {registered} profile")
        existing = self.profiles.get((role, user_id))
        if existing is not None:
            return dict(existing)
        return dict(self.add_profile(role, user_id, **fields))

    async def update_worker_profile(self, user_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        row = self.profiles.get(("worker", user_id))
        if row is None:
            raise RepositoryNotFoundError("worker profile not found")
        for column in ("name", "age", "skills", "location"):
            if column in fields:
                row[column] = fields[column] if column != "skills" else list(fields[column] or [])
        return dict(row)

    # jobs

    async def list_jobs(
        self,
        *,
        limit: int,
        offset: int,
        category: str | None = None,
        location: str | None = None,
        org_id: str | None = None,
    ) -> list[dict[str, Any]]:
        rows = [self._job_view(job) for job in self.jobs.values()]
        if category:
            rows = [row for row in rows if (row["category"] or "").lower() == category.lower()]
        if location:
            rows = [row for row in rows if location.lower() in (row["location"] or "").lower()]
        if org_id:
            rows = [row for row in rows if row["org_id"] == org_id]
        rows.sort(key=lambda row: row["created_at"], reverse=True)
        return rows[offset : offset + limit]

    async def get_job(self, job_id: str) -> dict[str, Any]:
        job = self.jobs.get(job_id)
        if job is None:
            raise RepositoryNotFoundError("job not found")
        return self._job_view(job)

    async def create_job(self, *, org_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        owner = next(
            (user_id for (role, user_id), row in self.profiles.items() if role == "organization" and row["id"] == org_id),
            None,
        )
        if owner is None:
            raise RepositoryNotFoundError("organization not found")
        return self.add_job(owner, **fields)

    async def update_job(self, *, job_id: str, org_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        self._require_job_owner(job_id=job_id, org_id=org_id)
        job = self.jobs[job_id]
        job.update({key: value for key, value in fields.items() if value is not None or key != "title"})
        job["updated_at"] = self._now()
        return self._job_view(job)

    async def delete_job(self, *, job_id: str, org_id: str) -> None:
        self._require_job_owner(job_id=job_id, org_id=org_id)
        linked = any(row["job_id"] == job_id for row in self.applications) or any(
            row["job_id"] == job_id for row in self.referrals
        )
        if linked:
            raise RepositoryConflictError("Failed to delete job. You may have existing applications linked to it.")
        del self.jobs[job_id]

    # applications

    async def has_applied(self, *, job_id: str, worker_id: str) -> bool:
        return any(row["job_id"] == job_id and row["worker_id"] == worker_id for row in self.applications)

    async def create_application(self, *, job_id: str, worker_id: str) -> dict[str, Any]:
        self._check("create_application")
        if job_id not in self.jobs:
            raise RepositoryNotFoundError("job not found")
        if await self.has_applied(job_id=job_id, worker_id=worker_id):
            raise RepositoryConflictError("You have already applied to this job.")
        row = {
            "id": str(uuid.uuid4()),
            "job_id": job_id,
            "worker_id": worker_id,
            "status": "pending",
            "created_at": self._now(),
        }
        self.applications.append(row)
        return self._application_view(row)

    async def get_application(self, application_id: str) -> dict[str, Any]:
        for row in self.applications:
            if row["id"] == application_id:
                return self._application_view(row)
        raise RepositoryNotFoundError("application not found")

    async def find_application(self, *, job_id: str, worker_id: str) -> dict[str, Any]:
        for row in self.applications:
            if row["job_id"] == job_id and row["worker_id"] == worker_id:
                return self._application_view(row)
        raise RepositoryNotFoundError("application not found")

    async def list_worker_applications(self, worker_id: str) -> list[dict[str, Any]]:
        rows = [self._application_view(row, include_worker=False) for row in self.applications if row["worker_id"] == worker_id]
        return sorted(rows, key=lambda row: row["created_at"], reverse=True)

    async def list_organization_applications(self, org_id: str) -> list[dict[str, Any]]:
        rows = [self._application_view(row) for row in self.applications if self.jobs[row["job_id"]]["org_id"] == org_id]
        return sorted(rows, key=lambda row: row["created_at"], reverse=True)

    async def update_application_status(self, *, application_id: str, status: str) -> dict[str, Any]:
        self._check("update_application_status")
        if status not in APPLICATION_STATUSES:
            raise RepositoryValidationError(f"invalid application status: {status}")
        for row in self.applications:
            if row["id"] == application_id:
                row["status"] = status
                return self._application_view(row)
        raise RepositoryNotFoundError("application not found")

    # notifications

    async def create_notification(
        self,
        *,
        recipient_id: str,
        recipient_role: str,
        message: str,
        type: str = "info",
        related_job_id: str | None = None,
        related_user_id: str | None = None,
        action_status: str | None = None,
    ) -> dict[str, Any]:
        self._check("create_notification")
        row = {
            "id": str(uuid.uuid4()),
            "recipient_id": recipient_id,
            "recipient_role": recipient_role,
            "message": message,
            "read": False,
            "type": type,
            "related_job_id": related_job_id,
            "related_user_id": related_user_id,
            "action_status": action_status,
            "created_at": self._now(),
        }
        self.notifications.append(row)
        return dict(row)

    async def list_notifications(self, *, recipient_id: str, unread_only: bool, limit: int) -> list[dict[str, Any]]:
        rows = [
            dict(row)
            for row in self.notifications
            if row["recipient_id"] == recipient_id and (not unread_only or not row["read"])
        ]
        rows.sort(key=lambda row: row["created_at"], reverse=True)
        return rows[:limit]

    async def count_unread_notifications(self, recipient_id: str) -> int:
        return sum(1 for row in self.notifications if row["recipient_id"] == recipient_id and not row["read"])

    async def get_notification(self, notification_id: str) -> dict[str, Any]:
        for row in self.notifications:
            if row["id"] == notification_id:
                return dict(row)
        raise RepositoryNotFoundError("notification not found")

    async def set_notification_read(self, *, notification_id: str, read: bool) -> dict[str, Any]:
        for row in self.notifications:
            if row["id"] == notification_id:
                row["read"] = read
                return dict(row)
        raise RepositoryNotFoundError("notification not found")

    async def set_notification_action(self, *, notification_id: str, action_status: str) -> dict[str, Any]:
        self._check("set_notification_action")
        if action_status not in NOTIFICATION_ACTION_STATUSES:
            raise RepositoryValidationError(f"invalid action status: {action_status}")
        for row in self.notifications:
            if row["id"] == notification_id:
                row["action_status"] = action_status
                row["read"] = True
                return dict(row)
        raise RepositoryNotFoundError("notification not found")

    # referrals

    async def create_referral(
        self,
        *,
        partner_id: str,
        job_id: str,
        candidate_name: str,
        candidate_phone: str | None,
        candidate_details: dict[str, Any],
    ) -> dict[str, Any]:
        self._check("create_referral")
        if job_id not in self.jobs:
            raise RepositoryNotFoundError("job not found")
        row = {
            "id": str(uuid.uuid4()),
            "partner_id": partner_id,
            "job_id": job_id,
            "candidate_name": candidate_name,
            "candidate_phone": candidate_phone,
            "candidate_details": dict(candidate_details),
            "status": "pending",
            "created_at": self._now(),
        }
        self.referrals.append(row)
        return self._referral_view(row)

    async def get_referral(self, referral_id: str) -> dict[str, Any]:
        for row in self.referrals:
            if row["id"] == referral_id:
                return self._referral_view(row)
        raise RepositoryNotFoundError("referral not found")

    async def list_referrals(self, partner_id: str) -> list[dict[str, Any]]:
        rows = [self._referral_view(row) for row in self.referrals if row["partner_id"] == partner_id]
        return sorted(rows, key=lambda row: row["created_at"], reverse=True)

    async def list_referral_statuses(self, partner_id: str) -> list[str]:
        return [row["status"] for row in self.referrals if row["partner_id"] == partner_id]

    async def update_referral_status(self, *, referral_id: str, status: str) -> dict[str, Any]:
        if status not in REFERRAL_STATUSES:
            raise RepositoryValidationError(f"invalid referral status: {status}")
        for row in self.referrals:
            if row["id"] == referral_id:
                row["status"] = status
                return self._referral_view(row)
        raise RepositoryNotFoundError("referral not found")

    # internals

    def _now(self) -> datetime:
        return self._base + timedelta(seconds=next(self._clock))

    def _check(self, method: str) -> None:
        self.calls.append(method)
        error = self.failures.get(method)
        if error is not None:
            raise error

    def _profile_row(self, role: str, user_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        row: dict[str, Any] = {"id": str(uuid.uuid4()), "user_id": user_id, "created_at": self._now()}
        for column in PROFILE_COLUMNS[role]:
            row[column] = fields.get(column)
        row["name"] = row.get("name") or ""
        if role == "worker":
            row["skills"] = list(row.get("skills") or [])
        if role != "referral":
            row["verified"] = False
        return row

    def _organization_by_id(self, org_id: str) -> dict[str, Any]:
        for (role, _), row in self.profiles.items():
            if role == "organization" and row["id"] == org_id:
                return row
        raise KeyError(org_id)

    def _job_view(self, job: dict[str, Any]) -> dict[str, Any]:
        org = self._organization_by_id(job["org_id"])
        return {
            **job,
            "organization_name": org["name"],
            "organization_phone": org.get("phone"),
            "organization_user_id": org["user_id"],
        }

    def _require_job_owner(self, *, job_id: str, org_id: str) -> None:
        job = self.jobs.get(job_id)
        if job is None:
            raise RepositoryNotFoundError("job not found")
        if job["org_id"] != org_id:
            raise RepositoryForbiddenError("job belongs to another organization")

    def _application_view(self, row: dict[str, Any], *, include_worker: bool = True) -> dict[str, Any]:
        job = self._job_view(self.jobs[row["job_id"]])
        worker = None
        profile = self.profiles.get(("worker", row["worker_id"]))
        if include_worker and profile is not None:
            worker = {
                "id": row["worker_id"],
                "name": profile["name"],
                "email": profile.get("email"),
                "phone": profile.get("phone"),
                "skills": list(profile.get("skills") or []),
            }
        return {
            "id": row["id"],
            "job_id": row["job_id"],
            "job_title": job["title"],
            "org_id": job["org_id"],
            "organization_name": job["organization_name"],
            "worker_id": row["worker_id"],
            "status": row["status"],
            "worker": worker,
            "created_at": row["created_at"],
        }

    def _referral_view(self, row: dict[str, Any]) -> dict[str, Any]:
        job = self.jobs.get(row["job_id"])
        view = self._job_view(job) if job else {}
        return {
            **row,
            "candidate_details": dict(row["candidate_details"]),
            "job_title": view.get("title"),
            "org_id": view.get("org_id"),
            "organization_name": view.get("organization_name"),
        }


@pytest.fixture
def fake_repo() -> FakeRepository:
    return FakeRepository()


@pytest.fixture
def api_client(fake_repo: FakeRepository, monkeypatch: pytest.MonkeyPatch) -> TestClient:
    monkeypatch.setenv("GW_SUPABASE_URL", "https://example.supabase.co")
    monkeypatch.setenv("GW_SUPABASE_ANON_KEY", "anon-key")
    get_settings.cache_clear()
    app.dependency_overrides[get_repository] = lambda: fake_repo

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()
    get_settings.cache_clear()


def mock_supabase_user(monkeypatch: pytest.MonkeyPatch, user: dict[str, Any]) -> None:
    async def _fake_fetch(**_: Any) -> dict[str, Any]:
        return user

    monkeypatch.setattr(security, "_fetch_supabase_user", _fake_fetch)

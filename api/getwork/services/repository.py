from __future__ import annotations

import json
from functools import lru_cache
from typing import Any

import asyncpg  # type: ignore[import-untyped]
from asyncpg import exceptions as pg_exc

from getwork.core.config import get_settings


class RepositoryError(Exception):
    """Base repository error."""


class RepositoryUnavailableError(RepositoryError):
    """Raised when the database is unavailable or not configured."""


class RepositoryNotFoundError(RepositoryError):
    """Raised when the requested entity does not exist."""


class RepositoryConflictError(RepositoryError):
    """Raised when a write collides with an existing row."""


class RepositoryForbiddenError(RepositoryError):
    """Raised when an operation is not permitted for the actor."""


class RepositoryValidationError(RepositoryError):
    """Raised when payload validation fails before persistence."""


PROFILE_TABLES = {
    "worker": "workers",
    "organization": "organizations",
    "referral": "referral_partners",
}
PROFILE_COLUMNS = {
    "worker": ("name", "email", "phone", "age", "skills", "location", "experience"),
    "organization": ("name", "email", "phone", "location"),
    "referral": ("name", "email", "phone"),
}
PROFILE_SELECT = {
    "worker": "id::text as id, user_id::text as user_id, name, email, phone, age, skills, location, experience, verified, created_at",
    "organization": "id::text as id, user_id::text as user_id, name, email, phone, location, verified, created_at",
    "referral": "id::text as id, user_id::text as user_id, name, email, phone, created_at",
}
WORKER_EDITABLE_COLUMNS = ("name", "age", "skills", "location")
JOB_EDITABLE_COLUMNS = ("title", "description", "salary_range", "location", "category")
APPLICATION_STATUSES = {"pending", "accepted", "rejected"}
REFERRAL_STATUSES = {"pending", "accepted", "hired", "rejected"}
NOTIFICATION_ACTION_STATUSES = {"pending", "accepted", "rejected"}

JOB_SELECT = """
  j.id::text as id,
  j.org_id::text as org_id,
  j.title,
  j.description,
  j.salary_range,
  j.location,
  j.category,
  o.name as organization_name,
  o.phone as organization_phone,
  o.user_id::text as organization_user_id,
  j.created_at,
  j.updated_at
from jobs j
join organizations o on o.id = j.org_id
"""

APPLICATION_SELECT = """
  a.id::text as id,
  a.job_id::text as job_id,
  j.title as job_title,
  j.org_id::text as org_id,
  o.name as organization_name,
  a.worker_id::text as worker_id,
  a.status,
  a.created_at,
  w.name as worker_name,
  w.email as worker_email,
  w.phone as worker_phone,
  w.skills as worker_skills
from job_applications a
join jobs j on j.id = a.job_id
join organizations o on o.id = j.org_id
left join workers w on w.user_id = a.worker_id
"""

NOTIFICATION_COLUMNS = """
  id::text as id,
  recipient_id::text as recipient_id,
  recipient_role,
  message,
  read,
  type,
  related_job_id::text as related_job_id,
  related_user_id::text as related_user_id,
  action_status,
  created_at
"""

REFERRAL_SELECT = """
  r.id::text as id,
  r.partner_id::text as partner_id,
  r.job_id::text as job_id,
  j.title as job_title,
  j.org_id::text as org_id,
  o.name as organization_name,
  r.candidate_name,
  r.candidate_phone,
  r.candidate_details,
  r.status,
  r.created_at
from referrals r
left join jobs j on j.id = r.job_id
left join organizations o on o.id = j.org_id
"""

_BAD_ID_ERRORS = (pg_exc.InvalidTextRepresentationError, asyncpg.DataError)


class PostgresRepository:
    def __init__(self, database_url: str | None, min_pool_size: int, max_pool_size: int) -> None:
        self.database_url = database_url
        self.min_pool_size = min_pool_size
        self.max_pool_size = max_pool_size
        self._pool: asyncpg.Pool | None = None

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    # profiles

    async def resolve_role(self, user_id: str) -> str | None:
        pool = await self._get_pool()
        try:
            return await pool.fetchval("select role from profiles where user_id = $1::uuid", user_id)
        except _BAD_ID_ERRORS:
            return None

    async def get_profile(self, role: str, user_id: str) -> dict[str, Any] | None:
        table = self._profile_table(role)
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(
                f"select {PROFILE_SELECT[role]} from {table} where user_id = $1::uuid",
                user_id,
            )
        except _BAD_ID_ERRORS:
            return None
        return self._profile_row_to_dict(row) if row else None

    async def ensure_profile(self, role: str, user_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        """Register the identity under `role` and return its profile row, inserting it when missing.

        The registry insert and the profile insert are both keyed by identity, so
        repeating the call returns the existing row instead of adding a second one.
        """
        table = self._profile_table(role)
        columns = PROFILE_COLUMNS[role]
        values = [self._profile_value(column, fields.get(column)) for column in columns]
        if not values[0] and role != "referral":
            raise RepositoryValidationError("profile name must be a non-empty string")
        placeholders = ", ".join(f"${index}" for index in range(2, len(columns) + 2))

        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                async with conn.transaction():
                    registered_role = await conn.fetchval(
                        """
                        insert into profiles (user_id, role)
                        values ($1::uuid, $2)
                        on conflict (user_id) do update set role = profiles.role
                        returning role
                        """,
                        user_id,
                        role,
                    )
                    if registered_role != role:
                        raise RepositoryConflictError(f"identity already has a {registered_role} profile")

                    row = await conn.fetchrow(
                        f"""
                        insert into {table} (user_id, {", ".join(columns)})
                        values ($1::uuid, {placeholders})
                        on conflict (user_id) do update set user_id = excluded.user_id
                        returning {PROFILE_SELECT[role]}
                        """,
                        user_id,
                        *values,
                    )
        except _BAD_ID_ERRORS as exc:
            raise RepositoryValidationError("invalid identity") from exc
        return self._profile_row_to_dict(row)

    async def update_worker_profile(self, user_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        assignments: list[str] = []
        params: list[Any] = [user_id]
        for column in WORKER_EDITABLE_COLUMNS:
            if column not in fields:
                continue
            params.append(self._profile_value(column, fields[column]))
            assignments.append(f"{column} = ${len(params)}")

        if not assignments:
            row = await self.get_profile("worker", user_id)
            if row is None:
                raise RepositoryNotFoundError("worker profile not found")
            return row

        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(
                f"""
                update workers
                set {", ".join(assignments)}
                where user_id = $1::uuid
                returning {PROFILE_SELECT["worker"]}
                """,
                *params,
            )
        except _BAD_ID_ERRORS as exc:
            raise RepositoryNotFoundError("worker profile not found") from exc
        if not row:
            raise RepositoryNotFoundError("worker profile not found")
        return self._profile_row_to_dict(row)

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
        pool = await self._get_pool()
        conditions: list[str] = []
        params: list[Any] = []

        def bind(value: Any) -> str:
            params.append(value)
            return f"${len(params)}"

        normalized_category = self._coerce_text(category)
        if normalized_category:
            conditions.append(f"j.category ilike {bind(normalized_category)}")

        normalized_location = self._coerce_text(location)
        if normalized_location:
            conditions.append(f"j.location ilike {bind(f'%{normalized_location}%')}")

        normalized_org_id = self._coerce_text(org_id)
        if normalized_org_id:
            conditions.append(f"j.org_id = {bind(normalized_org_id)}::uuid")

        where_sql = " and ".join(conditions) if conditions else "true"
        limit_token = bind(limit)
        offset_token = bind(offset)
        try:
            rows = await pool.fetch(
                f"""
                select {JOB_SELECT}
                where {where_sql}
                order by j.created_at desc, j.id asc
                limit {limit_token}
                offset {offset_token}
                """,
                *params,
            )
        except _BAD_ID_ERRORS:
            return []
        return [self._job_row_to_dict(row) for row in rows]

    async def get_job(self, job_id: str) -> dict[str, Any]:
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(f"select {JOB_SELECT} where j.id = $1::uuid", job_id)
        except _BAD_ID_ERRORS as exc:
            raise RepositoryNotFoundError("job not found") from exc
        if not row:
            raise RepositoryNotFoundError("job not found")
        return self._job_row_to_dict(row)

    async def create_job(self, *, org_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        title = self._coerce_text(fields.get("title"))
        if not title:
            raise RepositoryValidationError("title must be a non-empty string")
        pool = await self._get_pool()
        try:
            job_id = await pool.fetchval(
                """
                insert into jobs (org_id, title, description, salary_range, location, category)
                values ($1::uuid, $2, $3, $4, $5, $6)
                returning id::text
                """,
                org_id,
                title,
                self._coerce_text(fields.get("description")),
                self._coerce_text(fields.get("salary_range")),
                self._coerce_text(fields.get("location")),
                self._coerce_text(fields.get("category")),
            )
        except (pg_exc.ForeignKeyViolationError, *_BAD_ID_ERRORS) as exc:
            raise RepositoryNotFoundError("organization not found") from exc
        return await self.get_job(job_id)

    async def update_job(self, *, job_id: str, org_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        await self._require_job_owner(job_id=job_id, org_id=org_id)

        assignments: list[str] = []
        params: list[Any] = [job_id]
        for column in JOB_EDITABLE_COLUMNS:
            if column not in fields:
                continue
            value = self._coerce_text(fields[column])
            if column == "title" and not value:
                raise RepositoryValidationError("title must be a non-empty string")
            params.append(value)
            assignments.append(f"{column} = ${len(params)}")

        if assignments:
            pool = await self._get_pool()
            await pool.execute(
                f"update jobs set {', '.join(assignments)}, updated_at = now() where id = $1::uuid",
                *params,
            )
        return await self.get_job(job_id)

    async def delete_job(self, *, job_id: str, org_id: str) -> None:
        await self._require_job_owner(job_id=job_id, org_id=org_id)
        pool = await self._get_pool()
        try:
            await pool.execute("delete from jobs where id = $1::uuid", job_id)
        except pg_exc.ForeignKeyViolationError as exc:
            raise RepositoryConflictError(
                "Failed to delete job. You may have existing applications linked to it."
            ) from exc

    async def _require_job_owner(self, *, job_id: str, org_id: str) -> None:
        pool = await self._get_pool()
        try:
            owner = await pool.fetchval("select org_id::text from jobs where id = $1::uuid", job_id)
        except _BAD_ID_ERRORS as exc:
            raise RepositoryNotFoundError("job not found") from exc
        if owner is None:
            raise RepositoryNotFoundError("job not found")
        if owner != org_id:
            raise RepositoryForbiddenError("job belongs to another organization")

    # applications

    async def has_applied(self, *, job_id: str, worker_id: str) -> bool:
        pool = await self._get_pool()
        try:
            found = await pool.fetchval(
                "select 1 from job_applications where job_id = $1::uuid and worker_id = $2::uuid",
                job_id,
                worker_id,
            )
        except _BAD_ID_ERRORS:
            return False
        return found is not None

    async def create_application(self, *, job_id: str, worker_id: str) -> dict[str, Any]:
        pool = await self._get_pool()
        try:
            application_id = await pool.fetchval(
                """
                insert into job_applications (job_id, worker_id, status)
                values ($1::uuid, $2::uuid, 'pending')
                returning id::text
                """,
                job_id,
                worker_id,
            )
        except pg_exc.UniqueViolationError as exc:
            raise RepositoryConflictError("You have already applied to this job.") from exc
        except (pg_exc.ForeignKeyViolationError, *_BAD_ID_ERRORS) as exc:
            raise RepositoryNotFoundError("job not found") from exc
        return await self.get_application(application_id)

    async def get_application(self, application_id: str) -> dict[str, Any]:
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(f"select {APPLICATION_SELECT} where a.id = $1::uuid", application_id)
        except _BAD_ID_ERRORS as exc:
            raise RepositoryNotFoundError("application not found") from exc
        if not row:
            raise RepositoryNotFoundError("application not found")
        return self._application_row_to_dict(row)

    async def find_application(self, *, job_id: str, worker_id: str) -> dict[str, Any]:
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(
                f"select {APPLICATION_SELECT} where a.job_id = $1::uuid and a.worker_id = $2::uuid",
                job_id,
                worker_id,
            )
        except _BAD_ID_ERRORS as exc:
            raise RepositoryNotFoundError("application not found") from exc
        if not row:
            raise RepositoryNotFoundError("application not found")
        return self._application_row_to_dict(row)

    async def list_worker_applications(self, worker_id: str) -> list[dict[str, Any]]:
        pool = await self._get_pool()
        rows = await pool.fetch(
            f"select {APPLICATION_SELECT} where a.worker_id = $1::uuid order by a.created_at desc",
            worker_id,
        )
        return [self._application_row_to_dict(row, include_worker=False) for row in rows]

    async def list_organization_applications(self, org_id: str) -> list[dict[str, Any]]:
        pool = await self._get_pool()
        rows = await pool.fetch(
            f"select {APPLICATION_SELECT} where j.org_id = $1::uuid order by a.created_at desc",
            org_id,
        )
        return [self._application_row_to_dict(row) for row in rows]

    async def update_application_status(self, *, application_id: str, status: str) -> dict[str, Any]:
        if status not in APPLICATION_STATUSES:
            raise RepositoryValidationError(f"invalid application status: {status}")
        pool = await self._get_pool()
        try:
            updated = await pool.fetchval(
                """
                update job_applications
                set status = $2, updated_at = now()
                where id = $1::uuid
                returning id::text
                """,
                application_id,
                status,
            )
        except _BAD_ID_ERRORS as exc:
            raise RepositoryNotFoundError("application not found") from exc
        if updated is None:
            raise RepositoryNotFoundError("application not found")
        return await self.get_application(updated)

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
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(
                f"""
                insert into notifications (
                  recipient_id, recipient_role, message, type, related_job_id, related_user_id, action_status
                )
                values ($1::uuid, $2, $3, $4, $5::uuid, $6::uuid, $7)
                returning {NOTIFICATION_COLUMNS}
                """,
                recipient_id,
                recipient_role,
                message,
                type,
                related_job_id,
                related_user_id,
                action_status,
            )
        except _BAD_ID_ERRORS as exc:
            raise RepositoryValidationError("invalid notification reference") from exc
        return self._notification_row_to_dict(row)

    async def list_notifications(self, *, recipient_id: str, unread_only: bool, limit: int) -> list[dict[str, Any]]:
        pool = await self._get_pool()
        rows = await pool.fetch(
            f"""
            select {NOTIFICATION_COLUMNS}
            from notifications
            where recipient_id = $1::uuid
              and ($2::boolean = false or read = false)
            order by created_at desc, id asc
            limit $3
            """,
            recipient_id,
            unread_only,
            limit,
        )
        return [self._notification_row_to_dict(row) for row in rows]

    async def count_unread_notifications(self, recipient_id: str) -> int:
        pool = await self._get_pool()
        count = await pool.fetchval(
            "select count(*) from notifications where recipient_id = $1::uuid and read = false",
            recipient_id,
        )
        return int(count or 0)

    async def get_notification(self, notification_id: str) -> dict[str, Any]:
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(
                f"select {NOTIFICATION_COLUMNS} from notifications where id = $1::uuid",
                notification_id,
            )
        except _BAD_ID_ERRORS as exc:
            raise RepositoryNotFoundError("notification not found") from exc
        if not row:
            raise RepositoryNotFoundError("notification not found")
        return self._notification_row_to_dict(row)

    async def set_notification_read(self, *, notification_id: str, read: bool) -> dict[str, Any]:
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(
                f"update notifications set read = $2 where id = $1::uuid returning {NOTIFICATION_COLUMNS}",
                notification_id,
                read,
            )
        except _BAD_ID_ERRORS as exc:
            raise RepositoryNotFoundError("notification not found") from exc
        if not row:
            raise RepositoryNotFoundError("notification not found")
        return self._notification_row_to_dict(row)

    async def set_notification_action(self, *, notification_id: str, action_status: str) -> dict[str, Any]:
        if action_status not in NOTIFICATION_ACTION_STATUSES:
            raise RepositoryValidationError(f"invalid action status: {action_status}")
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(
                f"""
                update notifications
                set action_status = $2, read = true
                where id = $1::uuid
                returning {NOTIFICATION_COLUMNS}
                """,
                notification_id,
                action_status,
            )
        except _BAD_ID_ERRORS as exc:
            raise RepositoryNotFoundError("notification not found") from exc
        if not row:
            raise RepositoryNotFoundError("notification not found")
        return self._notification_row_to_dict(row)

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
        pool = await self._get_pool()
        try:
            referral_id = await pool.fetchval(
                """
                insert into referrals (partner_id, job_id, candidate_name, candidate_phone, candidate_details, status)
                values ($1::uuid, $2::uuid, $3, $4, $5::jsonb, 'pending')
                returning id::text
                """,
                partner_id,
                job_id,
                candidate_name,
                candidate_phone,
                json.dumps(candidate_details),
            )
        except (pg_exc.ForeignKeyViolationError, *_BAD_ID_ERRORS) as exc:
            raise RepositoryNotFoundError("job not found") from exc
        return await self.get_referral(referral_id)

    async def get_referral(self, referral_id: str) -> dict[str, Any]:
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(f"select {REFERRAL_SELECT} where r.id = $1::uuid", referral_id)
        except _BAD_ID_ERRORS as exc:
            raise RepositoryNotFoundError("referral not found") from exc
        if not row:
            raise RepositoryNotFoundError("referral not found")
        return self._referral_row_to_dict(row)

    async def list_referrals(self, partner_id: str) -> list[dict[str, Any]]:
        pool = await self._get_pool()
        rows = await pool.fetch(
            f"select {REFERRAL_SELECT} where r.partner_id = $1::uuid order by r.created_at desc",
            partner_id,
        )
        return [self._referral_row_to_dict(row) for row in rows]

    async def list_referral_statuses(self, partner_id: str) -> list[str]:
        pool = await self._get_pool()
        rows = await pool.fetch("select status from referrals where partner_id = $1::uuid", partner_id)
        return [row["status"] for row in rows]

    async def update_referral_status(self, *, referral_id: str, status: str) -> dict[str, Any]:
        if status not in REFERRAL_STATUSES:
            raise RepositoryValidationError(f"invalid referral status: {status}")
        pool = await self._get_pool()
        try:
            updated = await pool.fetchval(
                """
                update referrals
                set status = $2, updated_at = now()
                where id = $1::uuid
                returning id::text
                """,
                referral_id,
                status,
            )
        except _BAD_ID_ERRORS as exc:
            raise RepositoryNotFoundError("referral not found") from exc
        if updated is None:
            raise RepositoryNotFoundError("referral not found")
        return await self.get_referral(updated)

    # internals

    async def _get_pool(self) -> asyncpg.Pool:
        if not self.database_url:
            raise RepositoryUnavailableError("GW_DATABASE_URL is required")

        if self._pool is not None:
            return self._pool

        try:
            self._pool = await asyncpg.create_pool(
                dsn=self.database_url,
                min_size=self.min_pool_size,
                max_size=self.max_pool_size,
                command_timeout=15,
            )
            return self._pool
        except Exception as exc:  # pragma: no cover - depends on environment
            raise RepositoryUnavailableError("database unavailable") from exc

    @staticmethod
    def _profile_table(role: str) -> str:
        table = PROFILE_TABLES.get(role)
        if table is None:
            raise RepositoryValidationError(f"unknown profile role: {role}")
        return table

    def _profile_value(self, column: str, value: Any) -> Any:
        if column == "skills":
            return self._coerce_text_list(value)
        if column == "age":
            return self._coerce_int(value)
        if column == "name":
            return self._coerce_text(value) or ""
        return self._coerce_text(value)

    def _profile_row_to_dict(self, row: asyncpg.Record) -> dict[str, Any]:
        profile = dict(row)
        if "skills" in profile:
            profile["skills"] = list(profile["skills"] or [])
        return profile

    @staticmethod
    def _job_row_to_dict(row: asyncpg.Record) -> dict[str, Any]:
        return {
            "id": row["id"],
            "org_id": row["org_id"],
            "title": row["title"],
            "description": row["description"],
            "salary_range": row["salary_range"],
            "location": row["location"],
            "category": row["category"],
            "organization_name": row["organization_name"],
            "organization_phone": row["organization_phone"],
            "organization_user_id": row["organization_user_id"],
            "created_at": row["created_at"],
            "updated_at": row["updated_at"],
        }

    @staticmethod
    def _application_row_to_dict(row: asyncpg.Record, *, include_worker: bool = True) -> dict[str, Any]:
        worker = None
        if include_worker and row["worker_name"] is not None:
            worker = {
                "id": row["worker_id"],
                "name": row["worker_name"],
                "email": row["worker_email"],
                "phone": row["worker_phone"],
                "skills": list(row["worker_skills"] or []),
            }
        return {
            "id": row["id"],
            "job_id": row["job_id"],
            "job_title": row["job_title"],
            "org_id": row["org_id"],
            "organization_name": row["organization_name"],
            "worker_id": row["worker_id"],
            "status": row["status"],
            "worker": worker,
            "created_at": row["created_at"],
        }

    @staticmethod
    def _notification_row_to_dict(row: asyncpg.Record) -> dict[str, Any]:
        return dict(row)

    def _referral_row_to_dict(self, row: asyncpg.Record) -> dict[str, Any]:
        return {
            "id": row["id"],
            "partner_id": row["partner_id"],
            "job_id": row["job_id"],
            "job_title": row["job_title"],
            "org_id": row["org_id"],
            "organization_name": row["organization_name"],
            "candidate_name": row["candidate_name"],
            "candidate_phone": row["candidate_phone"],
            "candidate_details": self._coerce_json_dict(row["candidate_details"]),
            "status": row["status"],
            "created_at": row["created_at"],
        }

    @staticmethod
    def _coerce_text(value: Any) -> str | None:
        if value is None:
            return None
        if isinstance(value, str):
            stripped = value.strip()
            return stripped or None
        return str(value)

    @staticmethod
    def _coerce_text_list(value: Any) -> list[str]:
        if not isinstance(value, list):
            return []
        items: list[str] = []
        for item in value:
            if not isinstance(item, str):
                continue
            stripped = item.strip()
            if stripped:
                items.append(stripped)
        return items

    @staticmethod
    def _coerce_int(value: Any) -> int | None:
        if value is None:
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            return None

    @staticmethod
    def _coerce_json_dict(value: Any) -> dict[str, Any]:
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except json.JSONDecodeError:
                return {}
        return value if isinstance(value, dict) else {}


@lru_cache
def get_repository() -> PostgresRepository:
    settings = get_settings()
    return PostgresRepository(
        database_url=settings.database_url,
        min_pool_size=settings.database_pool_min_size,
        max_pool_size=settings.database_pool_max_size,
    )

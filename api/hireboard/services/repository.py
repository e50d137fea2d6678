from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any

import asyncpg  # type: ignore[import-untyped]
from asyncpg import exceptions as pg_exc

from hireboard.core.auth import Principal
from hireboard.core.config import get_settings
from hireboard.services import guard
from hireboard.services.errors import (
    RepositoryDuplicateError,
    RepositoryNotFoundError,
    RepositoryUnavailableError,
)
from hireboard.services.guard import Action
from hireboard.services.store import InMemoryRepository
from hireboard.services.transitions import (
    HIDDEN_FROM_EMPLOYER,
    INITIAL_STATUS,
    NotificationDraft,
    new_application_notice,
    plan_transition,
)

logger = logging.getLogger(__name__)

APPLICATION_UNIQUE_CONSTRAINT = "applications_job_user_key"
JOB_COLUMNS = (
    "title",
    "description",
    "qualifications",
    "responsibilities",
    "location",
    "salary",
    "company",
    "type",
    "image",
)
_USER_SELECT = """
    id,
    role::text as role,
    email,
    name,
    resume,
    company,
    company_description,
    photo,
    phone,
    address,
    linkedin,
    created_at
"""
_JOB_SELECT = """
    j.id::text as id,
    j.employer_id,
    j.title,
    j.description,
    j.qualifications,
    j.responsibilities,
    j.location,
    j.salary,
    j.company,
    j.type::text as type,
    j.image,
    j.created_at,
    u.name as employer_name,
    u.company as employer_company
"""
_APPLICATION_SELECT = """
    a.id::text as id,
    a.job_id::text as job_id,
    a.user_id,
    a.status::text as status,
    a.applied_at,
    a.updated_at
"""
_NOTIFICATION_SELECT = """
    id::text as id,
    user_id,
    type::text as type,
    message,
    related_id::text as related_id,
    metadata,
    read,
    created_at
"""


class PostgresRepository:
    def __init__(
        self,
        database_url: str | None,
        min_pool_size: int,
        max_pool_size: int,
        command_timeout_seconds: float = 15.0,
        notify_employer_on_apply: bool = False,
    ) -> None:
        self.database_url = database_url
        self.min_pool_size = min_pool_size
        self.max_pool_size = max_pool_size
        self.command_timeout_seconds = command_timeout_seconds
        self.notify_employer_on_apply = notify_employer_on_apply
        self._pool: asyncpg.Pool | None = None

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    # Identity directory

    async def ensure_user(self, *, principal: Principal) -> dict[str, Any]:
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                async with conn.transaction():
                    await conn.execute(
                        """
                        insert into users (id, role, email, name)
                        values ($1, $2::user_role, $3, $4)
                        on conflict (id) do nothing
                        """,
                        principal.user_id,
                        principal.role.value,
                        principal.email,
                        principal.name,
                    )
                    row = await conn.fetchrow(f"select {_USER_SELECT} from users where id = $1", principal.user_id)
        except pg_exc.UniqueViolationError as exc:
            raise RepositoryDuplicateError("email already registered to another user") from exc
        except asyncpg.PostgresError as exc:
            raise RepositoryUnavailableError("failed to sync user") from exc
        if not row:
            raise RepositoryNotFoundError("User not found")
        return dict(row)

    async def get_user(self, *, user_id: str) -> dict[str, Any]:
        pool = await self._get_pool()
        row = await pool.fetchrow(f"select {_USER_SELECT} from users where id = $1", user_id)
        if not row:
            raise RepositoryNotFoundError("User not found")
        return dict(row)

    async def update_profile(self, *, actor: Principal, updates: dict[str, Any]) -> dict[str, Any]:
        allowed = guard.filter_profile_updates(actor.role, updates)
        if not allowed:
            return await self.get_user(user_id=actor.user_id)

        assignments = ", ".join(f"{column} = ${index}" for index, column in enumerate(allowed, start=2))
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(
                f"update users set {assignments} where id = $1 returning {_USER_SELECT}",
                actor.user_id,
                *allowed.values(),
            )
        except asyncpg.PostgresError as exc:
            raise RepositoryUnavailableError("failed to update profile") from exc
        if not row:
            raise RepositoryNotFoundError("User not found")
        return dict(row)

    # Job catalog

    async def list_jobs(
        self,
        *,
        search: str | None = None,
        location: str | None = None,
        job_type: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        clauses: list[str] = []
        args: list[Any] = []

        def bind(value: Any) -> str:
            args.append(value)
            return f"${len(args)}"

        if search:
            pattern = bind(f"%{_escape_like(search)}%")
            clauses.append(f"(j.title ilike {pattern} or j.description ilike {pattern} or j.company ilike {pattern})")
        if location:
            clauses.append(f"j.location ilike {bind(f'%{_escape_like(location)}%')}")
        if job_type:
            clauses.append(f"j.type::text = {bind(job_type)}")

        where = f"where {' and '.join(clauses)}" if clauses else ""
        limit_param = bind(limit)
        offset_param = bind(offset)
        pool = await self._get_pool()
        rows = await pool.fetch(
            f"""
            select {_JOB_SELECT}
            from jobs j
            left join users u on u.id = j.employer_id
            {where}
            order by j.created_at desc
            limit {limit_param} offset {offset_param}
            """,
            *args,
        )
        return [self._job_row_to_dict(row) for row in rows]

    async def get_job(self, *, job_id: str) -> dict[str, Any]:
        pool = await self._get_pool()
        try:
            row = await self._fetch_job_row(conn=pool, job_id=job_id)
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError) as exc:
            raise RepositoryNotFoundError("Job not found") from exc
        if not row:
            raise RepositoryNotFoundError("Job not found")
        return self._job_row_to_dict(row)

    async def create_job(self, *, actor: Principal, fields: dict[str, Any]) -> dict[str, Any]:
        guard.require_role(actor, Action.CREATE_JOB)
        values = {column: fields[column] for column in JOB_COLUMNS if fields.get(column) is not None}
        columns = ["employer_id", *values]
        placeholders = ["$1"] + [
            f"${index}::job_type" if column == "type" else f"${index}"
            for index, column in enumerate(values, start=2)
        ]
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                async with conn.transaction():
                    job_id = await conn.fetchval(
                        f"""
                        insert into jobs ({", ".join(columns)})
                        values ({", ".join(placeholders)})
                        returning id::text
                        """,
                        actor.user_id,
                        *values.values(),
                    )
                    row = await self._fetch_job_row(conn=conn, job_id=job_id)
        except asyncpg.PostgresError as exc:
            raise RepositoryUnavailableError("failed to create job") from exc
        logger.info("job created job_id=%s employer_id=%s", job_id, actor.user_id)
        return self._job_row_to_dict(row)

    async def update_job(self, *, actor: Principal, job_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        guard.require_role(actor, Action.UPDATE_JOB)
        values = {column: fields[column] for column in JOB_COLUMNS if column in fields}
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                async with conn.transaction():
                    employer_id = await conn.fetchval(
                        "select employer_id from jobs where id = $1::uuid for update",
                        job_id,
                    )
                    if employer_id is None:
                        raise RepositoryNotFoundError("Job not found")
                    guard.require_ownership(actor, Action.UPDATE_JOB, employer_id)

                    if values:
                        assignments = ", ".join(
                            f"{column} = ${index}::job_type" if column == "type" else f"{column} = ${index}"
                            for index, column in enumerate(values, start=2)
                        )
                        await conn.execute(
                            f"update jobs set {assignments} where id = $1::uuid",
                            job_id,
                            *values.values(),
                        )
                    row = await self._fetch_job_row(conn=conn, job_id=job_id)
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError) as exc:
            raise RepositoryNotFoundError("Job not found") from exc
        except asyncpg.PostgresError as exc:
            raise RepositoryUnavailableError("failed to update job") from exc
        return self._job_row_to_dict(row)

    async def delete_job(self, *, actor: Principal, job_id: str) -> None:
        guard.require_role(actor, Action.DELETE_JOB)
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                async with conn.transaction():
                    employer_id = await conn.fetchval(
                        "select employer_id from jobs where id = $1::uuid for update",
                        job_id,
                    )
                    if employer_id is None:
                        raise RepositoryNotFoundError("Job not found")
                    guard.require_ownership(actor, Action.DELETE_JOB, employer_id)
                    await conn.execute("delete from jobs where id = $1::uuid", job_id)
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError) as exc:
            raise RepositoryNotFoundError("Job not found") from exc
        except asyncpg.PostgresError as exc:
            raise RepositoryUnavailableError("failed to delete job") from exc
        logger.info("job deleted job_id=%s employer_id=%s", job_id, actor.user_id)

    # Application ledger

    async def submit_application(self, *, actor: Principal, job_id: str) -> dict[str, Any]:
        guard.require_role(actor, Action.APPLY)
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                async with conn.transaction():
                    job = await self._fetch_job_row(conn=conn, job_id=job_id)
                    if not job:
                        raise RepositoryNotFoundError("Job not found")

                    # The unique constraint arbitrates concurrent submits for the same pair.
                    row = await conn.fetchrow(
                        f"""
                        insert into applications as a (job_id, user_id, status)
                        values ($1::uuid, $2, $3::application_status)
                        on conflict on constraint {APPLICATION_UNIQUE_CONSTRAINT} do nothing
                        returning {_APPLICATION_SELECT}
                        """,
                        job_id,
                        actor.user_id,
                        INITIAL_STATUS.value,
                    )
                    if not row:
                        logger.info("duplicate application job_id=%s user_id=%s", job_id, actor.user_id)
                        raise RepositoryDuplicateError("You have already applied for this job")

                    if self.notify_employer_on_apply:
                        await self._insert_notification(
                            conn=conn,
                            draft=new_application_notice(
                                job=dict(job),
                                applicant_name=actor.display_name,
                                now=row["applied_at"],
                            ),
                        )
        except pg_exc.UniqueViolationError as exc:
            raise RepositoryDuplicateError("You have already applied for this job") from exc
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError) as exc:
            raise RepositoryNotFoundError("Job not found") from exc
        except asyncpg.PostgresError as exc:
            raise RepositoryUnavailableError("failed to submit application") from exc

        logger.info("application submitted application_id=%s job_id=%s", row["id"], job_id)
        return dict(row)

    async def list_employer_applications(self, *, actor: Principal) -> list[dict[str, Any]]:
        guard.require_role(actor, Action.LIST_EMPLOYER_APPLICATIONS)
        pool = await self._get_pool()
        rows = await pool.fetch(
            f"""
            select
              {_APPLICATION_SELECT},
              j.title as job_title,
              j.company as job_company,
              j.employer_id as job_employer_id,
              u.name as applicant_name,
              u.email as applicant_email,
              u.phone as applicant_phone,
              u.address as applicant_address,
              u.linkedin as applicant_linkedin,
              u.resume as applicant_resume
            from applications a
            join jobs j on j.id = a.job_id
            left join users u on u.id = a.user_id
            where j.employer_id = $1
              and a.status::text <> all($2::text[])
            order by a.applied_at desc
            """,
            actor.user_id,
            [status.value for status in HIDDEN_FROM_EMPLOYER],
        )
        return [
            {
                **self._application_row_to_dict(row),
                "job": {
                    "id": row["job_id"],
                    "title": row["job_title"],
                    "company": row["job_company"],
                    "employer_id": row["job_employer_id"],
                },
                "applicant": {
                    "id": row["user_id"],
                    "name": row["applicant_name"],
                    "email": row["applicant_email"],
                    "phone": row["applicant_phone"],
                    "address": row["applicant_address"],
                    "linkedin": row["applicant_linkedin"],
                    "resume": row["applicant_resume"],
                },
            }
            for row in rows
        ]

    async def list_seeker_applications(self, *, actor: Principal) -> list[dict[str, Any]]:
        guard.require_role(actor, Action.LIST_OWN_APPLICATIONS)
        pool = await self._get_pool()
        rows = await pool.fetch(
            f"""
            select
              {_APPLICATION_SELECT},
              j.id::text as job_ref,
              j.title as job_title,
              j.company as job_company,
              j.location as job_location,
              j.type::text as job_type,
              j.salary as job_salary
            from applications a
            left join jobs j on j.id = a.job_id
            where a.user_id = $1
            order by a.applied_at desc
            """,
            actor.user_id,
        )
        return [
            {
                **self._application_row_to_dict(row),
                "job": (
                    {
                        "id": row["job_ref"],
                        "title": row["job_title"],
                        "company": row["job_company"],
                        "location": row["job_location"],
                        "type": row["job_type"],
                        "salary": row["job_salary"],
                    }
                    if row["job_ref"]
                    else None
                ),
            }
            for row in rows
        ]

    async def update_application_status(
        self,
        *,
        actor: Principal,
        application_id: str,
        status: str,
    ) -> dict[str, Any]:
        guard.require_role(actor, Action.UPDATE_APPLICATION_STATUS)
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                async with conn.transaction():
                    existing = await conn.fetchrow(
                        f"""
                        select {_APPLICATION_SELECT}
                        from applications a
                        where a.id = $1::uuid
                        for update
                        """,
                        application_id,
                    )
                    if not existing:
                        raise RepositoryNotFoundError("Application not found")

                    job = await conn.fetchrow(
                        "select title, employer_id from jobs where id = $1::uuid",
                        existing["job_id"],
                    )
                    if not job:
                        raise RepositoryNotFoundError("Job not found")
                    guard.require_ownership(actor, Action.UPDATE_APPLICATION_STATUS, job["employer_id"])

                    now = datetime.now(timezone.utc)
                    transition = plan_transition(
                        application=dict(existing),
                        job_title=job["title"],
                        new_status=status,
                        actor_name=actor.display_name,
                        now=now,
                    )
                    if transition is None:
                        return self._application_row_to_dict(existing)

                    row = await conn.fetchrow(
                        f"""
                        update applications as a
                        set status = $2::application_status, updated_at = $3
                        where a.id = $1::uuid
                        returning {_APPLICATION_SELECT}
                        """,
                        application_id,
                        transition.new_status.value,
                        now,
                    )
                    await self._insert_notification(conn=conn, draft=transition.notification)
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError) as exc:
            raise RepositoryNotFoundError("Application not found") from exc
        except asyncpg.PostgresError as exc:
            raise RepositoryUnavailableError("failed to update application status") from exc

        logger.info(
            "application status changed application_id=%s old=%s new=%s actor=%s",
            application_id,
            transition.old_status.value,
            transition.new_status.value,
            actor.user_id,
        )
        return self._application_row_to_dict(row)

    # Notification outbox

    async def list_notifications(
        self,
        *,
        actor: Principal,
        unread_only: bool = False,
        limit: int = 50,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        pool = await self._get_pool()
        rows = await pool.fetch(
            f"""
            select {_NOTIFICATION_SELECT}
            from notifications
            where user_id = $1
              and ($2::boolean = false or read = false)
            order by created_at desc
            limit $3 offset $4
            """,
            actor.user_id,
            unread_only,
            limit,
            offset,
        )
        return [self._notification_row_to_dict(row) for row in rows]

    async def count_unread_notifications(self, *, actor: Principal) -> int:
        pool = await self._get_pool()
        count = await pool.fetchval(
            "select count(*) from notifications where user_id = $1 and read = false",
            actor.user_id,
        )
        return int(count or 0)

    async def mark_notification_read(self, *, actor: Principal, notification_id: str) -> dict[str, Any]:
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                async with conn.transaction():
                    owner_id = await conn.fetchval(
                        "select user_id from notifications where id = $1::uuid for update",
                        notification_id,
                    )
                    if owner_id is None:
                        raise RepositoryNotFoundError("Notification not found")
                    guard.require_ownership(actor, Action.UPDATE_NOTIFICATION, owner_id)
                    row = await conn.fetchrow(
                        f"""
                        update notifications
                        set read = true
                        where id = $1::uuid
                        returning {_NOTIFICATION_SELECT}
                        """,
                        notification_id,
                    )
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError) as exc:
            raise RepositoryNotFoundError("Notification not found") from exc
        except asyncpg.PostgresError as exc:
            raise RepositoryUnavailableError("failed to update notification") from exc
        return self._notification_row_to_dict(row)

    async def mark_all_notifications_read(self, *, actor: Principal) -> int:
        pool = await self._get_pool()
        try:
            result = await pool.execute(
                "update notifications set read = true where user_id = $1 and read = false",
                actor.user_id,
            )
        except asyncpg.PostgresError as exc:
            raise RepositoryUnavailableError("failed to update notifications") from exc
        # asyncpg returns the command tag, e.g. "UPDATE 3".
        return int(result.rsplit(" ", maxsplit=1)[-1])

    async def _insert_notification(self, *, conn: asyncpg.Connection, draft: NotificationDraft) -> None:
        await conn.execute(
            """
            insert into notifications (user_id, type, message, related_id, metadata)
            values ($1, $2::notification_type, $3, $4::uuid, $5::jsonb)
            """,
            draft.user_id,
            draft.type.value,
            draft.message,
            draft.related_id,
            json.dumps(draft.metadata),
        )

    async def _fetch_job_row(
        self,
        *,
        conn: asyncpg.Connection | asyncpg.Pool,
        job_id: str,
    ) -> asyncpg.Record | None:
        return await conn.fetchrow(
            f"""
            select {_JOB_SELECT}
            from jobs j
            left join users u on u.id = j.employer_id
            where j.id = $1::uuid
            """,
            job_id,
        )

    async def _get_pool(self) -> asyncpg.Pool:
        if not self.database_url:
            raise RepositoryUnavailableError("HB_DATABASE_URL is required")

        if self._pool is not None:
            return self._pool

        try:
            self._pool = await asyncpg.create_pool(
                dsn=self.database_url,
                min_size=self.min_pool_size,
                max_size=self.max_pool_size,
                command_timeout=self.command_timeout_seconds,
            )
            return self._pool
        except Exception as exc:  # pragma: no cover - depends on environment
            raise RepositoryUnavailableError("database unavailable") from exc

    @staticmethod
    def _job_row_to_dict(row: asyncpg.Record) -> dict[str, Any]:
        return {
            "id": row["id"],
            "employer_id": row["employer_id"],
            "title": row["title"],
            "description": row["description"],
            "qualifications": row["qualifications"],
            "responsibilities": row["responsibilities"],
            "location": row["location"],
            "salary": row["salary"],
            "company": row["company"],
            "type": row["type"],
            "image": row["image"],
            "created_at": row["created_at"],
            "employer": {
                "id": row["employer_id"],
                "name": row["employer_name"],
                "company": row["employer_company"],
            },
        }

    @staticmethod
    def _application_row_to_dict(row: asyncpg.Record) -> dict[str, Any]:
        return {
            "id": row["id"],
            "job_id": row["job_id"],
            "user_id": row["user_id"],
            "status": row["status"],
            "applied_at": row["applied_at"],
            "updated_at": row["updated_at"],
        }

    @staticmethod
    def _notification_row_to_dict(row: asyncpg.Record) -> dict[str, Any]:
        metadata = row["metadata"]
        if isinstance(metadata, str):
            try:
                metadata = json.loads(metadata)
            except json.JSONDecodeError:
                metadata = {}
        return {
            "id": row["id"],
            "user_id": row["user_id"],
            "type": row["type"],
            "message": row["message"],
            "related_id": row["related_id"],
            "metadata": metadata if isinstance(metadata, dict) else {},
            "read": bool(row["read"]),
            "created_at": row["created_at"],
        }


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


Repository = PostgresRepository | InMemoryRepository


@lru_cache
def get_repository() -> Repository:
    settings = get_settings()
    if not settings.database_url:
        logger.warning("HB_DATABASE_URL not set; using in-process store for environment=%s", settings.environment)
        return InMemoryRepository(notify_employer_on_apply=settings.notify_employer_on_apply)
    return PostgresRepository(
        database_url=settings.database_url,
        min_pool_size=settings.database_pool_min_size,
        max_pool_size=settings.database_pool_max_size,
        command_timeout_seconds=settings.database_command_timeout_seconds,
        notify_employer_on_apply=settings.notify_employer_on_apply,
    )


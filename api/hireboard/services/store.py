from __future__ import annotations

import asyncio
import copy
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator
from uuid import uuid4

from hireboard.core.auth import Principal
from hireboard.services import guard
from hireboard.services.errors import (
    RepositoryDuplicateError,
    RepositoryNotFoundError,
    RepositoryUnavailableError,
)
from hireboard.services.guard import Action
from hireboard.services.transitions import (
    HIDDEN_FROM_EMPLOYER,
    INITIAL_STATUS,
    NotificationDraft,
    new_application_notice,
    plan_transition,
)

logger = logging.getLogger(__name__)

USER_PROFILE_FIELDS = (
    "name",
    "resume",
    "company",
    "company_description",
    "photo",
    "phone",
    "address",
    "linkedin",
)


@dataclass(slots=True)
class _StagedWrites:
    users: dict[str, dict[str, Any]] = field(default_factory=dict)
    jobs: dict[str, dict[str, Any]] = field(default_factory=dict)
    deleted_jobs: set[str] = field(default_factory=set)
    applications: dict[str, dict[str, Any]] = field(default_factory=dict)
    notifications: dict[str, dict[str, Any]] = field(default_factory=dict)


class InMemoryRepository:
    """Process-local store used when no database is configured.

    Writers are serialized by a single lock, which also arbitrates the
    (job_id, user_id) uniqueness key. Each unit of work stages its writes and
    publishes them only after every step succeeded.
    """

    def __init__(self, *, notify_employer_on_apply: bool = False) -> None:
        self.notify_employer_on_apply = notify_employer_on_apply
        self.users: dict[str, dict[str, Any]] = {}
        self.jobs: dict[str, dict[str, Any]] = {}
        self.applications: dict[str, dict[str, Any]] = {}
        self.notifications: dict[str, dict[str, Any]] = {}
        self._application_keys: dict[tuple[str, str], str] = {}
        self._lock = asyncio.Lock()
        self._last_timestamp: datetime | None = None
        self.fail_next_notification_write = False

    async def close(self) -> None:
        return None

    # Identity directory

    async def ensure_user(self, *, principal: Principal) -> dict[str, Any]:
        async with self._transaction() as staged:
            existing = self.users.get(principal.user_id)
            if existing:
                return dict(existing)
            row = {
                "id": principal.user_id,
                "role": principal.role.value,
                "email": principal.email,
                "name": principal.name,
                "created_at": self._now(),
            }
            for key in USER_PROFILE_FIELDS:
                row.setdefault(key, None)
            staged.users[row["id"]] = row
            logger.info("user registered user_id=%s role=%s", row["id"], row["role"])
            return dict(row)

    async def get_user(self, *, user_id: str) -> dict[str, Any]:
        row = self.users.get(user_id)
        if not row:
            raise RepositoryNotFoundError("User not found")
        return dict(row)

    async def update_profile(self, *, actor: Principal, updates: dict[str, Any]) -> dict[str, Any]:
        allowed = guard.filter_profile_updates(actor.role, updates)
        async with self._transaction() as staged:
            existing = self.users.get(actor.user_id)
            if not existing:
                raise RepositoryNotFoundError("User not found")
            row = {**existing, **allowed}
            staged.users[row["id"]] = row
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
        rows = list(self.jobs.values())
        if search:
            needle = search.lower()
            rows = [
                row
                for row in rows
                if any(needle in (row.get(key) or "").lower() for key in ("title", "description", "company"))
            ]
        if location:
            rows = [row for row in rows if location.lower() in (row.get("location") or "").lower()]
        if job_type:
            rows = [row for row in rows if row.get("type") == job_type]
        rows.sort(key=lambda row: row["created_at"], reverse=True)
        return [self._job_with_employer(row) for row in rows[offset : offset + limit]]

    async def get_job(self, *, job_id: str) -> dict[str, Any]:
        row = self.jobs.get(job_id)
        if not row:
            raise RepositoryNotFoundError("Job not found")
        return self._job_with_employer(row)

    async def create_job(self, *, actor: Principal, fields: dict[str, Any]) -> dict[str, Any]:
        guard.require_role(actor, Action.CREATE_JOB)
        async with self._transaction() as staged:
            row = {
                "salary": None,
                "type": "Full-time",
                "image": None,
                **fields,
                "id": str(uuid4()),
                "employer_id": actor.user_id,
                "created_at": self._now(),
            }
            staged.jobs[row["id"]] = row
            logger.info("job created job_id=%s employer_id=%s", row["id"], actor.user_id)
            return self._job_with_employer(row, staged=staged)

    async def update_job(self, *, actor: Principal, job_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        guard.require_role(actor, Action.UPDATE_JOB)
        async with self._transaction() as staged:
            existing = self.jobs.get(job_id)
            if not existing:
                raise RepositoryNotFoundError("Job not found")
            guard.require_ownership(actor, Action.UPDATE_JOB, existing["employer_id"])
            row = {**existing, **fields}
            staged.jobs[job_id] = row
            return self._job_with_employer(row)

    async def delete_job(self, *, actor: Principal, job_id: str) -> None:
        guard.require_role(actor, Action.DELETE_JOB)
        async with self._transaction() as staged:
            existing = self.jobs.get(job_id)
            if not existing:
                raise RepositoryNotFoundError("Job not found")
            guard.require_ownership(actor, Action.DELETE_JOB, existing["employer_id"])
            staged.deleted_jobs.add(job_id)
            logger.info("job deleted job_id=%s employer_id=%s", job_id, actor.user_id)

    # Application ledger

    async def submit_application(self, *, actor: Principal, job_id: str) -> dict[str, Any]:
        guard.require_role(actor, Action.APPLY)
        async with self._transaction() as staged:
            job = self.jobs.get(job_id)
            if not job:
                raise RepositoryNotFoundError("Job not found")
            if (job_id, actor.user_id) in self._application_keys:
                logger.info("duplicate application job_id=%s user_id=%s", job_id, actor.user_id)
                raise RepositoryDuplicateError("You have already applied for this job")

            now = self._now()
            row = {
                "id": str(uuid4()),
                "job_id": job_id,
                "user_id": actor.user_id,
                "status": INITIAL_STATUS.value,
                "applied_at": now,
                "updated_at": now,
            }
            staged.applications[row["id"]] = row
            if self.notify_employer_on_apply:
                self._stage_notification(
                    staged,
                    new_application_notice(job=job, applicant_name=actor.display_name, now=now),
                )
            logger.info("application submitted application_id=%s job_id=%s", row["id"], job_id)
            return dict(row)

    async def list_employer_applications(self, *, actor: Principal) -> list[dict[str, Any]]:
        guard.require_role(actor, Action.LIST_EMPLOYER_APPLICATIONS)
        rows: list[dict[str, Any]] = []
        for application in self.applications.values():
            if application["status"] in {status.value for status in HIDDEN_FROM_EMPLOYER}:
                continue
            job = self.jobs.get(application["job_id"])
            if not job or job["employer_id"] != actor.user_id:
                continue
            applicant = self.users.get(application["user_id"], {})
            rows.append(
                {
                    **application,
                    "job": {
                        "id": job["id"],
                        "title": job["title"],
                        "company": job["company"],
                        "employer_id": job["employer_id"],
                    },
                    "applicant": {
                        "id": application["user_id"],
                        **{key: applicant.get(key) for key in ("name", "email", "phone", "address", "linkedin", "resume")},
                    },
                }
            )
        rows.sort(key=lambda row: row["applied_at"], reverse=True)
        return rows

    async def list_seeker_applications(self, *, actor: Principal) -> list[dict[str, Any]]:
        guard.require_role(actor, Action.LIST_OWN_APPLICATIONS)
        rows: list[dict[str, Any]] = []
        for application in self.applications.values():
            if application["user_id"] != actor.user_id:
                continue
            job = self.jobs.get(application["job_id"])
            summary = None
            if job:
                summary = {key: job.get(key) for key in ("id", "title", "company", "location", "type", "salary")}
            rows.append({**application, "job": summary})
        rows.sort(key=lambda row: row["applied_at"], reverse=True)
        return rows

    async def update_application_status(
        self,
        *,
        actor: Principal,
        application_id: str,
        status: str,
    ) -> dict[str, Any]:
        guard.require_role(actor, Action.UPDATE_APPLICATION_STATUS)
        async with self._transaction() as staged:
            application = self.applications.get(application_id)
            if not application:
                raise RepositoryNotFoundError("Application not found")
            job = self.jobs.get(application["job_id"])
            if not job:
                raise RepositoryNotFoundError("Job not found")
            guard.require_ownership(actor, Action.UPDATE_APPLICATION_STATUS, job["employer_id"])

            now = self._now()
            transition = plan_transition(
                application=application,
                job_title=job["title"],
                new_status=status,
                actor_name=actor.display_name,
                now=now,
            )
            if transition is None:
                return dict(application)

            row = {**application, "status": transition.new_status.value, "updated_at": now}
            staged.applications[application_id] = row
            self._stage_notification(staged, transition.notification)
            logger.info(
                "application status changed application_id=%s old=%s new=%s actor=%s",
                application_id,
                transition.old_status.value,
                transition.new_status.value,
                actor.user_id,
            )
            return dict(row)

    # Notification outbox

    async def list_notifications(
        self,
        *,
        actor: Principal,
        unread_only: bool = False,
        limit: int = 50,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        rows = [row for row in self.notifications.values() if row["user_id"] == actor.user_id]
        if unread_only:
            rows = [row for row in rows if not row["read"]]
        rows.sort(key=lambda row: row["created_at"], reverse=True)
        return [copy.deepcopy(row) for row in rows[offset : offset + limit]]

    async def count_unread_notifications(self, *, actor: Principal) -> int:
        return sum(1 for row in self.notifications.values() if row["user_id"] == actor.user_id and not row["read"])

    async def mark_notification_read(self, *, actor: Principal, notification_id: str) -> dict[str, Any]:
        async with self._transaction() as staged:
            existing = self.notifications.get(notification_id)
            if not existing:
                raise RepositoryNotFoundError("Notification not found")
            guard.require_ownership(actor, Action.UPDATE_NOTIFICATION, existing["user_id"])
            row = {**existing, "read": True}
            staged.notifications[notification_id] = row
            return copy.deepcopy(row)

    async def mark_all_notifications_read(self, *, actor: Principal) -> int:
        async with self._transaction() as staged:
            for row in self.notifications.values():
                if row["user_id"] == actor.user_id and not row["read"]:
                    staged.notifications[row["id"]] = {**row, "read": True}
            return len(staged.notifications)

    def _stage_notification(self, staged: _StagedWrites, draft: NotificationDraft) -> None:
        if self.fail_next_notification_write:
            self.fail_next_notification_write = False
            raise RepositoryUnavailableError("notification write failed")
        row = {
            "id": str(uuid4()),
            "user_id": draft.user_id,
            "type": draft.type.value,
            "message": draft.message,
            "related_id": draft.related_id,
            "metadata": copy.deepcopy(draft.metadata),
            "read": False,
            "created_at": self._now(),
        }
        staged.notifications[row["id"]] = row

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[_StagedWrites]:
        async with self._lock:
            staged = _StagedWrites()
            yield staged
            self._commit(staged)

    def _commit(self, staged: _StagedWrites) -> None:
        self.users.update(staged.users)
        self.jobs.update(staged.jobs)
        for job_id in staged.deleted_jobs:
            self.jobs.pop(job_id, None)
        for application_id, row in staged.applications.items():
            self.applications[application_id] = row
            self._application_keys[(row["job_id"], row["user_id"])] = application_id
        self.notifications.update(staged.notifications)

    def _job_with_employer(self, row: dict[str, Any], *, staged: _StagedWrites | None = None) -> dict[str, Any]:
        employer = self.users.get(row["employer_id"])
        if employer is None and staged is not None:
            employer = staged.users.get(row["employer_id"])
        return {
            **row,
            "employer": {
                "id": row["employer_id"],
                "name": (employer or {}).get("name"),
                "company": (employer or {}).get("company"),
            },
        }

    def _now(self) -> datetime:
        # Strictly increasing so ordering by timestamp is deterministic.
        now = datetime.now(timezone.utc)
        if self._last_timestamp is not None and now <= self._last_timestamp:
            now = self._last_timestamp + timedelta(microseconds=1)
        self._last_timestamp = now
        return now

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any, TypeVar

import pytest

from hireboard.core.auth import Principal, Role
from hireboard.services.errors import (
    RepositoryDuplicateError,
    RepositoryForbiddenError,
    RepositoryUnavailableError,
)
from hireboard.services.store import InMemoryRepository

T = TypeVar("T")

SEEKER = Principal(user_id="seeker-1", role=Role.JOBSEEKER, email="seeker@example.com")
EMPLOYER = Principal(user_id="employer-1", role=Role.EMPLOYER, email="hiring@example.com", name="Erin")
JOB_FIELDS = {
    "title": "Platform Engineer",
    "description": "Run the platform",
    "qualifications": "Python",
    "responsibilities": "On-call",
    "location": "Remote",
    "company": "Acme",
}


def _run(coro: Coroutine[Any, Any, T]) -> T:
    return asyncio.run(coro)


async def _seed(repository: InMemoryRepository) -> str:
    await repository.ensure_user(principal=EMPLOYER)
    await repository.ensure_user(principal=SEEKER)
    job = await repository.create_job(actor=EMPLOYER, fields=JOB_FIELDS)
    return job["id"]


def test_concurrent_submits_create_exactly_one_application() -> None:
    async def scenario() -> list[Any]:
        repository = InMemoryRepository()
        job_id = await _seed(repository)
        results = await asyncio.gather(
            *(repository.submit_application(actor=SEEKER, job_id=job_id) for _ in range(20)),
            return_exceptions=True,
        )
        assert len(repository.applications) == 1
        return results

    results = _run(scenario())
    successes = [result for result in results if isinstance(result, dict)]
    duplicates = [result for result in results if isinstance(result, RepositoryDuplicateError)]
    assert len(successes) == 1
    assert len(duplicates) == 19


def test_concurrent_transitions_emit_one_notification_per_realized_change() -> None:
    async def scenario() -> InMemoryRepository:
        repository = InMemoryRepository()
        job_id = await _seed(repository)
        application = await repository.submit_application(actor=SEEKER, job_id=job_id)
        await asyncio.gather(
            *(
                repository.update_application_status(
                    actor=EMPLOYER,
                    application_id=application["id"],
                    status="accepted",
                )
                for _ in range(10)
            )
        )
        return repository

    repository = _run(scenario())
    assert len(repository.notifications) == 1
    (notification,) = repository.notifications.values()
    assert notification["metadata"]["oldStatus"] == "pending"
    assert notification["metadata"]["newStatus"] == "accepted"


def test_employer_submit_is_denied_before_any_write() -> None:
    async def scenario() -> InMemoryRepository:
        repository = InMemoryRepository()
        job_id = await _seed(repository)
        with pytest.raises(RepositoryForbiddenError):
            await repository.submit_application(actor=EMPLOYER, job_id=job_id)
        return repository

    repository = _run(scenario())
    assert repository.applications == {}


def test_outbox_failure_leaves_no_partial_state() -> None:
    async def scenario() -> tuple[InMemoryRepository, str]:
        repository = InMemoryRepository()
        job_id = await _seed(repository)
        application = await repository.submit_application(actor=SEEKER, job_id=job_id)
        repository.fail_next_notification_write = True
        with pytest.raises(RepositoryUnavailableError):
            await repository.update_application_status(
                actor=EMPLOYER,
                application_id=application["id"],
                status="rejected",
            )
        return repository, application["id"]

    repository, application_id = _run(scenario())
    assert repository.applications[application_id]["status"] == "pending"
    assert repository.notifications == {}


def test_new_application_notice_is_opt_in() -> None:
    async def scenario(enabled: bool) -> InMemoryRepository:
        repository = InMemoryRepository(notify_employer_on_apply=enabled)
        job_id = await _seed(repository)
        await repository.submit_application(actor=SEEKER, job_id=job_id)
        return repository

    assert _run(scenario(False)).notifications == {}

    repository = _run(scenario(True))
    (notification,) = repository.notifications.values()
    assert notification["type"] == "new_application"
    assert notification["user_id"] == EMPLOYER.user_id
    (job_id,) = repository.jobs
    assert notification["related_id"] == job_id


def test_failed_submit_with_notice_does_not_create_application() -> None:
    async def scenario() -> InMemoryRepository:
        repository = InMemoryRepository(notify_employer_on_apply=True)
        job_id = await _seed(repository)
        repository.fail_next_notification_write = True
        with pytest.raises(RepositoryUnavailableError):
            await repository.submit_application(actor=SEEKER, job_id=job_id)
        return repository

    repository = _run(scenario())
    assert repository.applications == {}
    assert repository.notifications == {}


def test_role_is_immutable_after_first_sync() -> None:
    async def scenario() -> dict[str, Any]:
        repository = InMemoryRepository()
        await repository.ensure_user(principal=SEEKER)
        return await repository.ensure_user(
            principal=Principal(user_id=SEEKER.user_id, role=Role.EMPLOYER, email=SEEKER.email)
        )

    assert _run(scenario())["role"] == "jobseeker"

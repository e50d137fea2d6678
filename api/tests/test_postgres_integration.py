from __future__ import annotations

import asyncio
import os
from collections.abc import Coroutine
from pathlib import Path
from typing import Any, TypeVar

import asyncpg  # type: ignore[import-untyped]
import pytest

from hireboard.core.auth import Principal, Role
from hireboard.services.errors import RepositoryDuplicateError, RepositoryForbiddenError
from hireboard.services.repository import PostgresRepository

T = TypeVar("T")

MIGRATIONS_DIR = Path(__file__).resolve().parents[2] / "db" / "migrations"
SEEKER = Principal(user_id="pg-seeker-1", role=Role.JOBSEEKER, email="pg-seeker@example.com")
EMPLOYER = Principal(user_id="pg-employer-1", role=Role.EMPLOYER, email="pg-hiring@example.com", name="Erin")
OTHER_EMPLOYER = Principal(user_id="pg-employer-2", role=Role.EMPLOYER, email="pg-talent@example.com")
JOB_FIELDS = {
    "title": "Database Engineer",
    "description": "Keep the ledger consistent",
    "qualifications": "Postgres",
    "responsibilities": "Schema ownership",
    "location": "Remote",
    "company": "Acme",
    "type": "Contract",
}


@pytest.fixture(scope="session")
def database_url() -> str:
    url = os.getenv("HB_DATABASE_URL") or os.getenv("DATABASE_URL")
    if not url:
        pytest.skip("integration tests require HB_DATABASE_URL or DATABASE_URL")
    return url


@pytest.fixture(autouse=True)
def reset_tables(database_url: str) -> None:
    _run(_prepare_database(database_url))


def test_submit_and_transition_round_trip(database_url: str) -> None:
    async def scenario() -> tuple[dict[str, Any], list[dict[str, Any]]]:
        repository = _repository(database_url)
        try:
            await _sync_users(repository)
            job = await repository.create_job(actor=EMPLOYER, fields=JOB_FIELDS)
            application = await repository.submit_application(actor=SEEKER, job_id=job["id"])
            assert application["status"] == "pending"
            updated = await repository.update_application_status(
                actor=EMPLOYER,
                application_id=application["id"],
                status="accepted",
            )
            await repository.update_application_status(
                actor=EMPLOYER,
                application_id=application["id"],
                status="accepted",
            )
            notifications = await repository.list_notifications(actor=SEEKER)
            return updated, notifications
        finally:
            await repository.close()

    updated, notifications = _run(scenario())
    assert updated["status"] == "accepted"
    assert len(notifications) == 1
    assert notifications[0]["related_id"] == updated["id"]
    assert notifications[0]["metadata"]["oldStatus"] == "pending"
    assert notifications[0]["metadata"]["newStatus"] == "accepted"


def test_concurrent_submits_are_arbitrated_by_unique_constraint(database_url: str) -> None:
    async def scenario() -> list[Any]:
        repository = _repository(database_url)
        try:
            await _sync_users(repository)
            job = await repository.create_job(actor=EMPLOYER, fields=JOB_FIELDS)
            return await asyncio.gather(
                *(repository.submit_application(actor=SEEKER, job_id=job["id"]) for _ in range(8)),
                return_exceptions=True,
            )
        finally:
            await repository.close()

    results = _run(scenario())
    assert len([result for result in results if isinstance(result, dict)]) == 1
    assert len([result for result in results if isinstance(result, RepositoryDuplicateError)]) == 7
    assert _run(_fetchval(database_url, "select count(*) from applications")) == 1


def test_non_owner_transition_leaves_no_trace(database_url: str) -> None:
    async def scenario() -> str:
        repository = _repository(database_url)
        try:
            await _sync_users(repository)
            job = await repository.create_job(actor=EMPLOYER, fields=JOB_FIELDS)
            application = await repository.submit_application(actor=SEEKER, job_id=job["id"])
            with pytest.raises(RepositoryForbiddenError):
                await repository.update_application_status(
                    actor=OTHER_EMPLOYER,
                    application_id=application["id"],
                    status="rejected",
                )
            return application["id"]
        finally:
            await repository.close()

    application_id = _run(scenario())
    status = _run(_fetchval(database_url, "select status::text from applications where id = $1::uuid", application_id))
    assert status == "pending"
    assert _run(_fetchval(database_url, "select count(*) from notifications")) == 0


def test_employer_listing_excludes_rejected(database_url: str) -> None:
    async def scenario() -> list[dict[str, Any]]:
        repository = _repository(database_url)
        try:
            await _sync_users(repository)
            job = await repository.create_job(actor=EMPLOYER, fields=JOB_FIELDS)
            application = await repository.submit_application(actor=SEEKER, job_id=job["id"])
            await repository.update_application_status(
                actor=EMPLOYER,
                application_id=application["id"],
                status="rejected",
            )
            employer_rows = await repository.list_employer_applications(actor=EMPLOYER)
            assert employer_rows == []
            return await repository.list_seeker_applications(actor=SEEKER)
        finally:
            await repository.close()

    seeker_rows = _run(scenario())
    assert [row["status"] for row in seeker_rows] == ["rejected"]
    assert seeker_rows[0]["job"]["type"] == "Contract"


def _repository(database_url: str) -> PostgresRepository:
    return PostgresRepository(database_url=database_url, min_pool_size=1, max_pool_size=4)


async def _sync_users(repository: PostgresRepository) -> None:
    for principal in (SEEKER, EMPLOYER, OTHER_EMPLOYER):
        await repository.ensure_user(principal=principal)


async def _prepare_database(database_url: str) -> None:
    conn = await asyncpg.connect(dsn=database_url)
    try:
        for path in sorted(MIGRATIONS_DIR.glob("*.sql")):
            await conn.execute(path.read_text(encoding="utf-8"))
        await conn.execute("truncate table notifications, applications, jobs, users restart identity cascade")
    finally:
        await conn.close()


async def _fetchval(database_url: str, query: str, *args: Any) -> Any:
    conn = await asyncpg.connect(dsn=database_url)
    try:
        return await conn.fetchval(query, *args)
    finally:
        await conn.close()


def _run(coro: Coroutine[Any, Any, T]) -> T:
    return asyncio.run(coro)

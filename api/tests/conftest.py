from __future__ import annotations

import os
from typing import Any

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

import hireboard.core.security as security
from hireboard.core.config import get_settings
from hireboard.main import app
from hireboard.services.repository import get_repository
from hireboard.services.store import InMemoryRepository

USERS_BY_TOKEN: dict[str, dict[str, Any]] = {
    "seeker-token": {
        "id": "seeker-1",
        "email": "seeker@example.com",
        "app_metadata": {"role": "jobseeker"},
        "user_metadata": {"name": "Sam Seeker"},
    },
    "seeker2-token": {
        "id": "seeker-2",
        "email": "second.seeker@example.com",
        "app_metadata": {"role": "jobseeker"},
        "user_metadata": {},
    },
    "seeker3-token": {
        "id": "seeker-3",
        "email": "third.seeker@example.com",
        "app_metadata": {"role": "jobseeker"},
        "user_metadata": {},
    },
    "employer-token": {
        "id": "employer-1",
        "email": "hiring@example.com",
        "app_metadata": {"role": "employer"},
        "user_metadata": {"name": "Erin Employer"},
    },
    "employer2-token": {
        "id": "employer-2",
        "email": "talent@example.org",
        "app_metadata": {"role": "employer"},
        "user_metadata": {},
    },
}

SEEKER = {"Authorization": "Bearer seeker-token"}
SEEKER2 = {"Authorization": "Bearer seeker2-token"}
SEEKER3 = {"Authorization": "Bearer seeker3-token"}
EMPLOYER = {"Authorization": "Bearer employer-token"}
EMPLOYER2 = {"Authorization": "Bearer employer2-token"}

JOB_PAYLOAD = {
    "title": "Backend Engineer",
    "description": "Build and run the hiring platform APIs",
    "qualifications": "Python, SQL",
    "responsibilities": "Own the application pipeline",
    "location": "Leeds",
    "company": "Acme Recruiting",
    "salary": "50000",
    "type": "Full-time",
}


@pytest.fixture
def repository() -> InMemoryRepository:
    return InMemoryRepository()


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch, repository: InMemoryRepository) -> TestClient:
    os.environ["HB_IDENTITY_URL"] = "https://identity.example.com"
    get_settings.cache_clear()

    async def _fake_fetch(**kwargs: Any) -> dict[str, Any]:
        user = USERS_BY_TOKEN.get(kwargs["token"])
        if user is None:
            raise HTTPException(status_code=401, detail="invalid bearer token")
        return user

    monkeypatch.setattr(security, "_fetch_identity_user", _fake_fetch)
    app.dependency_overrides[get_repository] = lambda: repository

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    os.environ.pop("HB_IDENTITY_URL", None)
    get_settings.cache_clear()


def create_job(client: TestClient, headers: dict[str, str] = EMPLOYER, **overrides: Any) -> dict[str, Any]:
    response = client.post("/api/jobs", json={**JOB_PAYLOAD, **overrides}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def apply(client: TestClient, job_id: str, headers: dict[str, str] = SEEKER) -> dict[str, Any]:
    response = client.post("/api/applications", json={"jobId": job_id}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["application"]

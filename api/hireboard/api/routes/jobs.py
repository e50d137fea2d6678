from fastapi import APIRouter, Depends, Query, status

from hireboard.api.deps import get_actor
from hireboard.api.errors import to_http_exception
from hireboard.core.config import get_settings
from hireboard.schemas.jobs import JobCreateRequest, JobDeletedOut, JobOut, JobType, JobUpdateRequest, job_changes
from hireboard.services.errors import RepositoryError
from hireboard.services.repository import get_repository

router = APIRouter()


@router.get("", response_model=list[JobOut])
async def list_jobs(
    search: str | None = Query(default=None, min_length=1),
    location: str | None = Query(default=None, min_length=1),
    job_type: JobType | None = Query(default=None, alias="type"),
    limit: int | None = Query(default=None, ge=1),
    offset: int = Query(default=0, ge=0),
    repository=Depends(get_repository),
) -> list[JobOut]:
    settings = get_settings()
    page_size = min(limit or settings.default_page_size, settings.max_page_size)
    try:
        rows = await repository.list_jobs(
            search=search,
            location=location,
            job_type=job_type,
            limit=page_size,
            offset=offset,
        )
    except RepositoryError as exc:
        raise to_http_exception(exc) from exc
    return [JobOut(**row) for row in rows]


@router.get("/{job_id}", response_model=JobOut)
async def get_job(job_id: str, repository=Depends(get_repository)) -> JobOut:
    try:
        row = await repository.get_job(job_id=job_id)
    except RepositoryError as exc:
        raise to_http_exception(exc) from exc
    return JobOut(**row)


@router.post("", response_model=JobOut, status_code=status.HTTP_201_CREATED)
async def create_job(
    payload: JobCreateRequest,
    actor=Depends(get_actor),
    repository=Depends(get_repository),
) -> JobOut:
    try:
        row = await repository.create_job(actor=actor, fields=payload.model_dump())
    except RepositoryError as exc:
        raise to_http_exception(exc) from exc
    return JobOut(**row)


@router.put("/{job_id}", response_model=JobOut)
async def update_job(
    job_id: str,
    payload: JobUpdateRequest,
    actor=Depends(get_actor),
    repository=Depends(get_repository),
) -> JobOut:
    try:
        row = await repository.update_job(
            actor=actor,
            job_id=job_id,
            fields=job_changes(payload),
        )
    except RepositoryError as exc:
        raise to_http_exception(exc) from exc
    return JobOut(**row)


@router.delete("/{job_id}", response_model=JobDeletedOut)
async def delete_job(
    job_id: str,
    actor=Depends(get_actor),
    repository=Depends(get_repository),
) -> JobDeletedOut:
    try:
        await repository.delete_job(actor=actor, job_id=job_id)
    except RepositoryError as exc:
        raise to_http_exception(exc) from exc
    return JobDeletedOut()

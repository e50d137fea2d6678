from fastapi import APIRouter, Depends, HTTPException, status

from hireboard.api.deps import get_actor
from hireboard.api.errors import to_http_exception
from hireboard.schemas.applications import (
    ApplicationCreatedOut,
    ApplicationCreateRequest,
    ApplicationOut,
    ApplicationStatusRequest,
    EmployerApplicationOut,
    SeekerApplicationOut,
)
from hireboard.services import guard
from hireboard.services.errors import RepositoryError
from hireboard.services.guard import Action
from hireboard.services.repository import get_repository
from hireboard.services.transitions import parse_status

router = APIRouter()


@router.post("", response_model=ApplicationCreatedOut, status_code=status.HTTP_201_CREATED)
async def apply_for_job(
    payload: ApplicationCreateRequest,
    actor=Depends(get_actor),
    repository=Depends(get_repository),
) -> ApplicationCreatedOut:
    try:
        guard.require_role(actor, Action.APPLY)
    except RepositoryError as exc:
        raise to_http_exception(exc) from exc

    job_id = (payload.job_id or "").strip()
    if not job_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Job ID is required")

    try:
        row = await repository.submit_application(actor=actor, job_id=job_id)
    except RepositoryError as exc:
        raise to_http_exception(exc) from exc

    return ApplicationCreatedOut(application=ApplicationOut(**row))


@router.get("", response_model=list[EmployerApplicationOut])
async def list_employer_applications(
    actor=Depends(get_actor),
    repository=Depends(get_repository),
) -> list[EmployerApplicationOut]:
    try:
        rows = await repository.list_employer_applications(actor=actor)
    except RepositoryError as exc:
        raise to_http_exception(exc) from exc
    return [EmployerApplicationOut(**row) for row in rows]


@router.get("/my-applications", response_model=list[SeekerApplicationOut])
async def list_my_applications(
    actor=Depends(get_actor),
    repository=Depends(get_repository),
) -> list[SeekerApplicationOut]:
    try:
        rows = await repository.list_seeker_applications(actor=actor)
    except RepositoryError as exc:
        raise to_http_exception(exc) from exc
    return [SeekerApplicationOut(**row) for row in rows]


@router.put("/{application_id}", response_model=ApplicationOut)
async def update_application_status(
    application_id: str,
    payload: ApplicationStatusRequest,
    actor=Depends(get_actor),
    repository=Depends(get_repository),
) -> ApplicationOut:
    try:
        guard.require_role(actor, Action.UPDATE_APPLICATION_STATUS)
        new_status = parse_status(payload.status)
        row = await repository.update_application_status(
            actor=actor,
            application_id=application_id,
            status=new_status.value,
        )
    except RepositoryError as exc:
        raise to_http_exception(exc) from exc
    return ApplicationOut(**row)

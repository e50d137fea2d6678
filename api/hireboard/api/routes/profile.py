from fastapi import APIRouter, Depends

from hireboard.api.deps import get_actor
from hireboard.api.errors import to_http_exception
from hireboard.schemas.profile import ProfileOut, ProfileUpdateRequest
from hireboard.services.errors import RepositoryError
from hireboard.services.repository import get_repository

router = APIRouter()


@router.get("", response_model=ProfileOut)
async def get_profile(actor=Depends(get_actor), repository=Depends(get_repository)) -> ProfileOut:
    try:
        row = await repository.get_user(user_id=actor.user_id)
    except RepositoryError as exc:
        raise to_http_exception(exc) from exc
    return ProfileOut(**row)


@router.put("", response_model=ProfileOut)
async def update_profile(
    payload: ProfileUpdateRequest,
    actor=Depends(get_actor),
    repository=Depends(get_repository),
) -> ProfileOut:
    try:
        row = await repository.update_profile(actor=actor, updates=payload.model_dump(exclude_unset=True))
    except RepositoryError as exc:
        raise to_http_exception(exc) from exc
    return ProfileOut(**row)

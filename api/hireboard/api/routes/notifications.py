from fastapi import APIRouter, Depends, Query

from hireboard.api.deps import get_actor
from hireboard.api.errors import to_http_exception
from hireboard.schemas.notifications import MarkAllReadOut, NotificationOut, UnreadCountOut
from hireboard.services.errors import RepositoryError
from hireboard.services.repository import get_repository

router = APIRouter()


@router.get("", response_model=list[NotificationOut])
async def list_notifications(
    actor=Depends(get_actor),
    repository=Depends(get_repository),
    unread_only: bool = Query(default=False),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
) -> list[NotificationOut]:
    try:
        rows = await repository.list_notifications(
            actor=actor,
            unread_only=unread_only,
            limit=limit,
            offset=offset,
        )
    except RepositoryError as exc:
        raise to_http_exception(exc) from exc
    return [NotificationOut(**row) for row in rows]


@router.get("/unread-count", response_model=UnreadCountOut)
async def unread_count(actor=Depends(get_actor), repository=Depends(get_repository)) -> UnreadCountOut:
    try:
        count = await repository.count_unread_notifications(actor=actor)
    except RepositoryError as exc:
        raise to_http_exception(exc) from exc
    return UnreadCountOut(unread=count)


@router.patch("/{notification_id}/read", response_model=NotificationOut)
async def mark_read(
    notification_id: str,
    actor=Depends(get_actor),
    repository=Depends(get_repository),
) -> NotificationOut:
    try:
        row = await repository.mark_notification_read(actor=actor, notification_id=notification_id)
    except RepositoryError as exc:
        raise to_http_exception(exc) from exc
    return NotificationOut(**row)


@router.post("/read-all", response_model=MarkAllReadOut)
async def mark_all_read(actor=Depends(get_actor), repository=Depends(get_repository)) -> MarkAllReadOut:
    try:
        updated = await repository.mark_all_notifications_read(actor=actor)
    except RepositoryError as exc:
        raise to_http_exception(exc) from exc
    return MarkAllReadOut(updated=updated)

from datetime import datetime
from typing import Any, Literal

from pydantic import Field

from hireboard.schemas.base import CamelModel

NotificationTypeValue = Literal["application_update", "new_application"]


class NotificationOut(CamelModel):
    id: str
    user_id: str
    type: NotificationTypeValue
    message: str
    related_id: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    read: bool = False
    created_at: datetime


class UnreadCountOut(CamelModel):
    unread: int


class MarkAllReadOut(CamelModel):
    updated: int

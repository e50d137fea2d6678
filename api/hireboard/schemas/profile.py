from datetime import datetime
from typing import Literal

from hireboard.schemas.base import CamelModel


class ProfileUpdateRequest(CamelModel):
    # Unknown keys are ignored; the role allow-list is applied by the guard.
    name: str | None = None
    resume: str | None = None
    company: str | None = None
    company_description: str | None = None
    photo: str | None = None
    phone: str | None = None
    address: str | None = None
    linkedin: str | None = None


class ProfileOut(CamelModel):
    id: str
    role: Literal["jobseeker", "employer"]
    email: str | None = None
    name: str | None = None
    resume: str | None = None
    company: str | None = None
    company_description: str | None = None
    photo: str | None = None
    phone: str | None = None
    address: str | None = None
    linkedin: str | None = None
    created_at: datetime | None = None

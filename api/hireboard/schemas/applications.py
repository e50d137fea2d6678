from datetime import datetime
from typing import Literal

from pydantic import Field

from hireboard.schemas.base import CamelModel

ApplicationStatusValue = Literal["pending", "accepted", "rejected"]


class ApplicationCreateRequest(CamelModel):
    job_id: str | None = None


class ApplicationStatusRequest(CamelModel):
    status: str | None = None


class ApplicationOut(CamelModel):
    id: str
    job_id: str
    user_id: str
    status: ApplicationStatusValue
    applied_at: datetime
    updated_at: datetime | None = None


class ApplicationCreatedOut(CamelModel):
    message: str = "Application submitted successfully"
    application: ApplicationOut


class EmployerJobRefOut(CamelModel):
    id: str
    title: str
    company: str | None = None
    employer_id: str


class ApplicantOut(CamelModel):
    id: str
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    linkedin: str | None = None
    resume: str | None = None


class EmployerApplicationOut(ApplicationOut):
    job: EmployerJobRefOut
    applicant: ApplicantOut


class SeekerJobSummaryOut(CamelModel):
    id: str
    title: str
    company: str | None = None
    location: str | None = None
    type: str | None = None
    salary: str | None = None


class SeekerApplicationOut(ApplicationOut):
    job: SeekerJobSummaryOut | None = Field(default=None)

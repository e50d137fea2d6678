from datetime import datetime
from typing import Literal

from pydantic import Field

from hireboard.schemas.base import CamelModel

JobType = Literal["Full-time", "Part-time", "Contract", "Freelance", "Internship"]


class JobCreateRequest(CamelModel):
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    qualifications: str = Field(min_length=1)
    responsibilities: str = Field(min_length=1)
    location: str = Field(min_length=1)
    company: str = Field(min_length=1)
    salary: str | None = None
    type: JobType = "Full-time"
    image: str | None = None


class JobUpdateRequest(CamelModel):
    title: str | None = Field(default=None, min_length=1)
    description: str | None = Field(default=None, min_length=1)
    qualifications: str | None = Field(default=None, min_length=1)
    responsibilities: str | None = Field(default=None, min_length=1)
    location: str | None = Field(default=None, min_length=1)
    company: str | None = Field(default=None, min_length=1)
    salary: str | None = None
    type: JobType | None = None
    image: str | None = None


class JobEmployerOut(CamelModel):
    id: str
    name: str | None = None
    company: str | None = None


class JobOut(CamelModel):
    id: str
    employer_id: str
    title: str
    description: str
    qualifications: str
    responsibilities: str
    location: str
    salary: str | None = None
    company: str
    type: JobType = "Full-time"
    image: str | None = None
    employer: JobEmployerOut | None = None
    created_at: datetime


class JobDeletedOut(CamelModel):
    message: str = "Job deleted successfully"


NULLABLE_JOB_FIELDS = frozenset({"salary", "image"})


def job_changes(payload: JobUpdateRequest) -> dict[str, object]:
    """Fields the client actually sent; required columns cannot be cleared."""
    return {
        key: value
        for key, value in payload.model_dump(exclude_unset=True).items()
        if value is not None or key in NULLABLE_JOB_FIELDS
    }

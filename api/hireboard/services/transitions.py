from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from hireboard.services.errors import RepositoryValidationError


class ApplicationStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class NotificationType(str, Enum):
    APPLICATION_UPDATE = "application_update"
    NEW_APPLICATION = "new_application"


INITIAL_STATUS = ApplicationStatus.PENDING
# Employer listings soft-hide these; the records persist.
HIDDEN_FROM_EMPLOYER = frozenset({ApplicationStatus.REJECTED})


@dataclass(slots=True)
class NotificationDraft:
    user_id: str
    type: NotificationType
    message: str
    related_id: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class Transition:
    application_id: str
    old_status: ApplicationStatus
    new_status: ApplicationStatus
    notification: NotificationDraft


def parse_status(value: Any) -> ApplicationStatus:
    if isinstance(value, ApplicationStatus):
        return value
    if isinstance(value, str):
        try:
            return ApplicationStatus(value)
        except ValueError:
            pass
    raise RepositoryValidationError("Invalid status")


def plan_transition(
    *,
    application: dict[str, Any],
    job_title: str,
    new_status: Any,
    actor_name: str,
    now: datetime,
) -> Transition | None:
    """Return the transition to apply, or None when the status is unchanged.

    Any real change between the three statuses is permitted. Re-entering the
    current status is a silent no-op so no duplicate notification is emitted.
    """
    target = parse_status(new_status)
    current = parse_status(application["status"])
    if target == current:
        return None

    application_id = str(application["id"])
    return Transition(
        application_id=application_id,
        old_status=current,
        new_status=target,
        notification=NotificationDraft(
            user_id=str(application["user_id"]),
            type=NotificationType.APPLICATION_UPDATE,
            message=f'Your application for "{job_title}" has been {target.value} by {actor_name}',
            related_id=application_id,
            metadata={
                "jobTitle": job_title,
                "status": target.value,
                "newStatus": target.value,
                "oldStatus": current.value,
                "employerName": actor_name,
                "updatedAt": now.isoformat(),
            },
        ),
    )


def new_application_notice(
    *,
    job: dict[str, Any],
    applicant_name: str,
    now: datetime,
) -> NotificationDraft:
    return NotificationDraft(
        user_id=str(job["employer_id"]),
        type=NotificationType.NEW_APPLICATION,
        message=f'{applicant_name} applied for "{job["title"]}"',
        related_id=str(job["id"]),
        metadata={
            "jobTitle": job["title"],
            "applicantName": applicant_name,
            "appliedAt": now.isoformat(),
        },
    )

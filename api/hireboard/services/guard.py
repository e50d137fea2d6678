"""Role and ownership predicates consulted before ledger mutations and privileged reads.

Every check runs before the first write of a unit of work, so a denial never
leaves partial effects behind.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from hireboard.core.auth import Principal, Role
from hireboard.services.errors import RepositoryForbiddenError

logger = logging.getLogger(__name__)


class Action(str, Enum):
    APPLY = "apply"
    LIST_EMPLOYER_APPLICATIONS = "list_employer_applications"
    LIST_OWN_APPLICATIONS = "list_own_applications"
    UPDATE_APPLICATION_STATUS = "update_application_status"
    CREATE_JOB = "create_job"
    UPDATE_JOB = "update_job"
    DELETE_JOB = "delete_job"
    READ_NOTIFICATION = "read_notification"
    UPDATE_NOTIFICATION = "update_notification"


_ROLE_RULES: dict[Action, tuple[Role, str]] = {
    Action.APPLY: (Role.JOBSEEKER, "Only job seekers can apply for jobs"),
    Action.LIST_EMPLOYER_APPLICATIONS: (Role.EMPLOYER, "Only employers can view applications"),
    Action.LIST_OWN_APPLICATIONS: (Role.JOBSEEKER, "Only job seekers can view their applications"),
    Action.UPDATE_APPLICATION_STATUS: (Role.EMPLOYER, "Only employers can update applications"),
    Action.CREATE_JOB: (Role.EMPLOYER, "Only employers can create jobs"),
    Action.UPDATE_JOB: (Role.EMPLOYER, "Only employers can update jobs"),
    Action.DELETE_JOB: (Role.EMPLOYER, "Only employers can delete jobs"),
}

_OWNERSHIP_MESSAGES: dict[Action, str] = {
    Action.UPDATE_APPLICATION_STATUS: "You can only update applications for your jobs",
    Action.UPDATE_JOB: "You can only update your own jobs",
    Action.DELETE_JOB: "You can only delete your own jobs",
    Action.READ_NOTIFICATION: "You can only read your own notifications",
    Action.UPDATE_NOTIFICATION: "You can only update your own notifications",
}

PROFILE_FIELDS: dict[Role, frozenset[str]] = {
    Role.JOBSEEKER: frozenset({"name", "resume", "photo", "phone", "address", "linkedin"}),
    Role.EMPLOYER: frozenset(
        {"name", "company", "company_description", "photo", "phone", "address", "linkedin"}
    ),
}


def role_denial(actor: Principal, action: Action) -> str | None:
    rule = _ROLE_RULES.get(action)
    if rule is None:
        return None
    required_role, message = rule
    if actor.role != required_role:
        return message
    return None


def ownership_denial(actor: Principal, action: Action, owner_id: str | None) -> str | None:
    denial = role_denial(actor, action)
    if denial:
        return denial
    if owner_id is None or str(owner_id) != actor.user_id:
        return _OWNERSHIP_MESSAGES.get(action, "You do not own this record")
    return None


def is_allowed(actor: Principal, action: Action, *, owner_id: str | None = None) -> bool:
    if action in _OWNERSHIP_MESSAGES:
        return ownership_denial(actor, action, owner_id) is None
    return role_denial(actor, action) is None


def require_role(actor: Principal, action: Action) -> None:
    denial = role_denial(actor, action)
    if denial:
        logger.info("authorization denied action=%s user_id=%s role=%s", action.value, actor.user_id, actor.role.value)
        raise RepositoryForbiddenError(denial)


def require_ownership(actor: Principal, action: Action, owner_id: str | None) -> None:
    denial = ownership_denial(actor, action, owner_id)
    if denial:
        logger.info("ownership denied action=%s user_id=%s", action.value, actor.user_id)
        raise RepositoryForbiddenError(denial)


def filter_profile_updates(role: Role, updates: dict[str, Any]) -> dict[str, Any]:
    allowed = PROFILE_FIELDS.get(role, frozenset())
    return {key: value for key, value in updates.items() if key in allowed}

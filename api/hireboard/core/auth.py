from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    JOBSEEKER = "jobseeker"
    EMPLOYER = "employer"


@dataclass(slots=True)
class Principal:
    """Identity resolved from a bearer token by the identity service."""

    user_id: str
    role: Role
    email: str | None = None
    name: str | None = None

    @property
    def display_name(self) -> str:
        return self.name or self.email or self.user_id


def parse_role(value: object) -> Role | None:
    if isinstance(value, Role):
        return value
    if not isinstance(value, str):
        return None
    try:
        return Role(value.strip().lower())
    except ValueError:
        return None

from enum import Enum


class ErrorKind(str, Enum):
    VALIDATION = "VALIDATION"
    AUTHORIZATION_DENIED = "AUTHORIZATION_DENIED"
    NOT_FOUND = "NOT_FOUND"
    DUPLICATE = "DUPLICATE"
    STORAGE_ERROR = "STORAGE_ERROR"


class RepositoryError(Exception):
    """Base repository error."""

    kind: ErrorKind = ErrorKind.STORAGE_ERROR


class RepositoryUnavailableError(RepositoryError):
    """Raised when the store is unavailable or a write fails."""

    kind = ErrorKind.STORAGE_ERROR


class RepositoryNotFoundError(RepositoryError):
    """Raised when the requested entity does not exist."""

    kind = ErrorKind.NOT_FOUND


class RepositoryDuplicateError(RepositoryError):
    """Raised when a write would violate a uniqueness invariant."""

    kind = ErrorKind.DUPLICATE


class RepositoryForbiddenError(RepositoryError, PermissionError):
    """Raised when an operation is not permitted for the actor."""

    kind = ErrorKind.AUTHORIZATION_DENIED


class RepositoryValidationError(RepositoryError):
    """Raised when payload validation fails before persistence."""

    kind = ErrorKind.VALIDATION

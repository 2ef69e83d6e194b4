"""
Structured results returned by the service layer.

Business-rule and validation failures are not raised; services hand back a
:class:`ServiceResult` with ``success=False``, a human readable ``message``
and an :class:`ErrorKind`. The HTTP layer turns failed results into
:class:`ServiceError`, which the exception handlers render.
"""
import enum
from dataclasses import dataclass
from typing import Any, Optional


class ErrorKind(str, enum.Enum):
    NOT_FOUND = "not_found"
    UNAVAILABLE = "unavailable"
    CONFLICT = "conflict"
    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    ACCOUNT_LOCKED = "account_locked"
    SESSION_EXPIRED = "session_expired"
    DATABASE = "database"
    UNEXPECTED = "unexpected"


HTTP_STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.VALIDATION: 400,
    ErrorKind.UNAVAILABLE: 409,
    ErrorKind.CONFLICT: 409,
    ErrorKind.AUTHENTICATION: 401,
    ErrorKind.ACCOUNT_LOCKED: 423,
    ErrorKind.SESSION_EXPIRED: 401,
    ErrorKind.DATABASE: 503,
    ErrorKind.UNEXPECTED: 500,
}

DATABASE_ERROR_MESSAGE = "A database error occurred. Please try again later."
UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred"


@dataclass
class ServiceResult:
    success: bool
    message: str
    kind: Optional[ErrorKind] = None
    value: Any = None

    @classmethod
    def ok(cls, message: str, value: Any = None) -> "ServiceResult":
        return cls(True, message, None, value)

    @classmethod
    def fail(cls, kind: ErrorKind, message: str) -> "ServiceResult":
        return cls(False, message, kind, None)

    @classmethod
    def database_error(cls) -> "ServiceResult":
        return cls.fail(ErrorKind.DATABASE, DATABASE_ERROR_MESSAGE)

    @classmethod
    def unexpected_error(cls) -> "ServiceResult":
        return cls.fail(ErrorKind.UNEXPECTED, UNEXPECTED_ERROR_MESSAGE)


class ServiceError(Exception):
    """Raised by routers when a service call did not succeed."""

    def __init__(self, result: ServiceResult):
        super().__init__(result.message)
        self.result = result

    @property
    def status_code(self) -> int:
        return HTTP_STATUS_BY_KIND.get(self.result.kind, 500)


def unwrap(result: ServiceResult):
    """Return the result's value, or raise :class:`ServiceError` if it failed."""
    if not result.success:
        raise ServiceError(result)
    return result.value

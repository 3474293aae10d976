"""Error categories shared by all services.

Concrete errors are declared next to the code that raises them and subclass
one of the categories below. The API layer maps each category to an HTTP
status in a single place.
"""

from __future__ import annotations


class HrmsError(Exception):
    """Base class for domain errors."""

    code: str = "HRMS_ERROR"

    def __init__(self, message: str, code: str | None = None):
        self.message = message
        if code is not None:
            self.code = code
        super().__init__(message)


class NotFoundError(HrmsError):
    """A referenced record does not exist."""

    code = "NOT_FOUND"


class ValidationError(HrmsError):
    """Input is well-formed but violates a business rule."""

    code = "VALIDATION_ERROR"


class StateConflictError(HrmsError):
    """The record is not in a state that allows the operation."""

    code = "STATE_CONFLICT"


class UnauthorizedError(HrmsError):
    """The caller could not be authenticated."""

    code = "UNAUTHORIZED"


class ForbiddenError(HrmsError):
    """The caller is authenticated but may not perform the operation."""

    code = "FORBIDDEN"

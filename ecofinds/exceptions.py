"""Domain error taxonomy.

Every error raised by services and routers is an ``AppError`` subclass; the
handlers registered in ``ecofinds.main`` turn them into the JSON envelope.
"""

from typing import Optional

from starlette import status


class AppError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationFailed(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Validation failed"

    def __init__(self, errors: list[dict], message: Optional[str] = None):
        super().__init__(message)
        self.errors = errors


class Unauthenticated(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Could not authenticate user"


class Forbidden(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Access denied"


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class DomainConflict(AppError):
    """Business-rule violation: illegal transition, self-dealing, duplicate."""

    status_code = status.HTTP_409_CONFLICT
    default_message = "Operation not allowed"

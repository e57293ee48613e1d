"""Application error taxonomy.

Services raise these; the handlers installed in ``clinicbook.main`` turn them
into the JSON error envelope with the matching HTTP status code.
"""
from typing import Any


class AppError(Exception):
    status_code: int = 500
    error_code: str = "SERVER_ERROR"

    def __init__(self, message: str, *, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details


class InvalidArgument(AppError):
    status_code = 400
    error_code = "INVALID_ARGUMENT"


class Unauthenticated(AppError):
    status_code = 401
    error_code = "UNAUTHENTICATED"


class Forbidden(AppError):
    status_code = 403
    error_code = "FORBIDDEN"


class NotFound(AppError):
    status_code = 404
    error_code = "NOT_FOUND"


class Conflict(AppError):
    status_code = 409
    error_code = "CONFLICT"

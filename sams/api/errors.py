"""Application errors and response helpers.

Services raise these errors; the API layer renders them with error_response().
"""

from typing import Any, Dict

from fastapi import status


class AppError(Exception):
    """Base application error."""

    def __init__(self, message: str, code: str, http_status: int = 400):
        """Initialize error."""
        self.message = message
        self.code = code
        self.http_status = http_status
        super().__init__(message)


class NotFoundError(AppError):
    """Requested client, unit, bill or transaction does not exist."""

    def __init__(self, message: str = "Not found"):
        super().__init__(message, "not_found", status.HTTP_404_NOT_FOUND)


class ValidationError(AppError):
    """Input failed business validation."""

    def __init__(self, message: str = "Invalid input"):
        super().__init__(message, "validation_error", status.HTTP_400_BAD_REQUEST)


class ConflictError(AppError):
    """Operation conflicts with existing data (e.g. bills already generated)."""

    def __init__(self, message: str = "Conflict"):
        super().__init__(message, "conflict", status.HTTP_409_CONFLICT)


class ConfigurationError(AppError):
    """Client billing configuration is missing or invalid."""

    def __init__(self, message: str = "Billing configuration missing"):
        super().__init__(message, "config_error", status.HTTP_422_UNPROCESSABLE_ENTITY)


class InsufficientCreditError(AppError):
    """Credit balance would become negative."""

    def __init__(self, message: str = "Insufficient credit balance"):
        super().__init__(message, "insufficient_credit", status.HTTP_400_BAD_REQUEST)


class ImportAbortedError(AppError):
    """Import stopped after too many failed records."""

    def __init__(self, message: str = "Import aborted"):
        super().__init__(message, "import_aborted", status.HTTP_422_UNPROCESSABLE_ENTITY)


def error_response(error: AppError) -> Dict[str, Any]:
    """Create a standardized error response."""
    return {
        "error": {
            "code": error.code,
            "message": error.message,
        }
    }


__all__ = [
    "AppError",
    "NotFoundError",
    "ValidationError",
    "ConflictError",
    "ConfigurationError",
    "InsufficientCreditError",
    "ImportAbortedError",
    "error_response",
]

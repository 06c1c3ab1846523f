"""
Domain exceptions for the directory API.

Each kind carries a stable ``code`` and the HTTP status it maps to; the
handlers registered in ``thorbis.main`` render them as the standard error
envelope.
"""

from typing import Any, Dict, Optional

from fastapi import status


class ApiError(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Any] = None,
    ) -> None:
        self.message = message
        self.code = code or self.default_code
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        error: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details is not None:
            error["details"] = self.details
        return error


class ValidationError(ApiError):
    """Raised when input fails schema or cross-field constraints."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "VALIDATION_ERROR"


class UnauthorizedError(ApiError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_code = "UNAUTHORIZED"


class ForbiddenError(ApiError):
    status_code = status.HTTP_403_FORBIDDEN
    default_code = "FORBIDDEN"


class NotFoundError(ApiError):
    """Raised when an entity does not exist or is not visible to the caller."""

    status_code = status.HTTP_404_NOT_FOUND
    default_code = "NOT_FOUND"


class InvalidCategoriesError(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "INVALID_CATEGORIES"


class ConflictError(ApiError):
    """Raised when a mutation fails against the backend."""

    status_code = status.HTTP_409_CONFLICT
    default_code = "CONFLICT"


class BackendUnavailableError(ApiError):
    """Raised when no storage client can be obtained."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_code = "BACKEND_UNAVAILABLE"

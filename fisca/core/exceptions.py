"""Custom exception classes for the Fisca backend.

Every error carries the HTTP status it maps to, so the single exception
handler in ``fisca.main`` can render the ``{success, error, message}``
envelope without a lookup table.
"""

from fastapi import status


class FiscaError(Exception):
    """Base exception for Fisca."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "An error occurred"):
        self.message = message
        super().__init__(self.message)


class ValidationError(FiscaError):
    """Raised when input is malformed or out of range."""
    pass


class InvalidLevel(ValidationError):
    """Raised when an organizational level name is not one of the four known levels."""
    pass


class DanglingReference(FiscaError):
    """Raised when a referenced entity does not exist."""
    pass


class AuthenticationError(FiscaError):
    """Raised when authentication fails."""

    status_code = status.HTTP_401_UNAUTHORIZED


class AuthorizationDenied(FiscaError):
    """Raised when the acting role may not perform the requested grant or creation."""

    status_code = status.HTTP_403_FORBIDDEN


class ResourceNotFoundError(FiscaError):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ResourceConflictError(FiscaError):
    """Raised when a resource already exists."""

    status_code = status.HTTP_409_CONFLICT


class DuplicateGrant(ResourceConflictError):
    """Raised when a user already holds the same access grant."""
    pass


class BootstrapFailure(FiscaError):
    """Raised when seeding roles and permissions fails; the seed is rolled back."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

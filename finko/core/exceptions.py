"""
Simple exception classes for the application.
"""

from fastapi import HTTPException, status


class BadRequestError(HTTPException):
    """Raised when the client sent input we cannot act on."""

    def __init__(self, message: str):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=message
        )


class ValidationError(HTTPException):
    """Raised when input validation fails."""

    def __init__(self, message: str):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=message
        )


class UnauthorizedError(HTTPException):
    """Raised when the caller is not authenticated."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=message
        )


class ForbiddenError(HTTPException):
    """Raised when the caller lacks the required role."""

    def __init__(self, message: str = "Access denied"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=message
        )


class NotFoundError(HTTPException):
    """Raised when a requested resource is not found."""

    def __init__(self, resource_type: str, resource_id=None):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource_type} not found"
        )


class ConflictError(HTTPException):
    """Raised when there's a conflict with existing data."""

    def __init__(self, message: str):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=message
        )


class DatabaseError(HTTPException):
    """Raised when database operations fail."""

    def __init__(self, message: str = "Database operation failed"):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=message
        )


class ConfigurationError(HTTPException):
    """Raised when a required setting is missing."""

    def __init__(self, message: str):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=message
        )


class ExternalServiceError(HTTPException):
    """Raised when external service calls fail."""

    def __init__(self, service_name: str, message: str):
        super().__init__(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"{service_name} service error: {message}"
        )


# Specific domain exceptions
class UserNotFoundError(NotFoundError):
    """Raised when a user is not found."""

    def __init__(self, user_id=None):
        super().__init__("User", user_id)


class LedgerEntryNotFoundError(NotFoundError):
    """Raised when an expense or income is not found."""

    def __init__(self, kind: str, entry_id: int):
        super().__init__(kind.capitalize(), entry_id)


class BankProfileNotFoundError(NotFoundError):
    """Raised when a bank email profile is not found."""

    def __init__(self, profile_id: int):
        super().__init__("Bank email profile", profile_id)


class IdentityKeyNotFoundError(NotFoundError):
    """Raised when a public key is missing or owned by someone else."""

    def __init__(self, key_id: int):
        super().__init__("Key", key_id)


class LLMServiceError(ExternalServiceError):
    """Raised when LLM service calls fail."""

    def __init__(self, message: str):
        super().__init__("LLM Service", message)


class GmailAPIError(ExternalServiceError):
    """Raised when Gmail or Google OAuth calls fail."""

    def __init__(self, message: str):
        super().__init__("Gmail API", message)


class BancoChileAPIError(ExternalServiceError):
    """Raised when the Banco de Chile API calls fail."""

    def __init__(self, message: str):
        super().__init__("Banco de Chile API", message)


class GmailNotFoundError(Exception):
    """
    A Gmail resource vanished upstream (message deleted, history cursor too old).
    Never an HTTP error: callers treat it as a skip.
    """

    def __init__(self, resource: str, resource_id: str):
        super().__init__(f"Gmail {resource} {resource_id} not found")
        self.resource = resource
        self.resource_id = resource_id

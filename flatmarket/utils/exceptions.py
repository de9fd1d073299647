"""
Custom exception classes for the Flat Market API.
Provides structured error handling with appropriate HTTP status codes.
"""

from typing import Any, Dict, Optional, List
from fastapi import HTTPException, status


class APIException(HTTPException):
    """Base API exception class."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: Optional[str] = None,
        headers: Optional[Dict[str, Any]] = None,
        cause: Optional[str] = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code
        # Underlying reason for server-side failures; only exposed outside production
        self.cause = cause


class ValidationError(APIException):
    """Missing or malformed input."""

    def __init__(
        self,
        detail: str,
        field_errors: Optional[List[Dict[str, str]]] = None
    ):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            error_code="VALIDATION_ERROR"
        )
        self.field_errors = field_errors or []


class NotFoundError(APIException):
    """Resource not found exception."""

    def __init__(self, detail: str = "Resource not found"):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            error_code="NOT_FOUND"
        )


class UnauthenticatedError(APIException):
    """Missing, invalid or expired session token."""

    def __init__(self, detail: str = "Authentication required"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            error_code="UNAUTHENTICATED"
        )


class ForbiddenError(APIException):
    """Access forbidden exception."""

    def __init__(self, detail: str = "Access forbidden"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            error_code="FORBIDDEN"
        )


class ConflictError(APIException):
    """Request conflicts with the current state of a resource."""

    def __init__(self, detail: str):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            error_code="CONFLICT"
        )


class InternalError(APIException):
    """Unexpected internal fault."""

    def __init__(self, detail: str = "Internal server error", cause: Optional[str] = None):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail,
            error_code="INTERNAL_ERROR",
            cause=cause
        )


# Authentication specific exceptions
class InvalidCredentialsError(APIException):
    """Password did not match the stored hash."""

    def __init__(self, detail: str = "Invalid Password"):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            error_code="INVALID_CREDENTIALS"
        )


class InvalidTokenError(Exception):
    """
    Raised by the token verifier for any bad token.
    Signature, structure and expiry failures are deliberately indistinguishable.
    """


class UserNotFoundError(NotFoundError):
    """User not found exception."""

    def __init__(self, detail: str = "User Not Found"):
        super().__init__(detail)


class DuplicateEmailError(ConflictError):
    """Email is already registered."""

    def __init__(self, detail: str = "User already exists"):
        super().__init__(detail)


# Listing specific exceptions
class ListingNotFoundError(NotFoundError):
    """Listing does not exist or is not owned by the caller."""

    def __init__(self, detail: str = "Flat not found or you are not owner"):
        super().__init__(detail)


class ListingAlreadySoldError(ConflictError):
    """Sold is terminal."""

    def __init__(self, detail: str = "Flat is already sold"):
        super().__init__(detail)


# File upload exceptions
class UnsupportedMediaError(APIException):
    """Uploaded file is not an image."""

    def __init__(self, content_type: Optional[str] = None):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid file type '{content_type or 'unknown'}'. Only images are allowed.",
            error_code="UNSUPPORTED_MEDIA"
        )


class PayloadTooLargeError(APIException):
    """Uploaded file exceeds the size cap."""

    def __init__(self, size: int, max_size: int):
        max_mb = max_size / (1024 * 1024)
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"File size too large ({size} bytes). Maximum {max_mb:g}MB allowed.",
            error_code="PAYLOAD_TOO_LARGE"
        )


class UploadError(APIException):
    """Image hosting service failed to store a file."""

    def __init__(self, detail: str = "Image upload failed", cause: Optional[str] = None):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail,
            error_code="UPLOAD_ERROR",
            cause=cause
        )


class PersistenceError(APIException):
    """Database operation failed."""

    def __init__(self, detail: str = "Database operation failed", cause: Optional[str] = None):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail,
            error_code="PERSISTENCE_ERROR",
            cause=cause
        )

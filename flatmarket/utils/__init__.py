"""
Utility modules for the Flat Market API.
"""

from .auth import (
    PasswordHasher,
    TokenService,
    SessionClaims,
    AdminBypassPolicy,
    extract_token
)

from .exceptions import (
    APIException,
    ValidationError,
    NotFoundError,
    UnauthenticatedError,
    ForbiddenError,
    ConflictError,
    InternalError,
    InvalidCredentialsError,
    InvalidTokenError,
    UserNotFoundError,
    DuplicateEmailError,
    ListingNotFoundError,
    ListingAlreadySoldError,
    UnsupportedMediaError,
    PayloadTooLargeError,
    UploadError,
    PersistenceError
)

# Dependencies are imported directly where needed to avoid circular imports

__all__ = [
    # Auth utilities
    "PasswordHasher",
    "TokenService",
    "SessionClaims",
    "AdminBypassPolicy",
    "extract_token",

    # Exceptions
    "APIException",
    "ValidationError",
    "NotFoundError",
    "UnauthenticatedError",
    "ForbiddenError",
    "ConflictError",
    "InternalError",
    "InvalidCredentialsError",
    "InvalidTokenError",
    "UserNotFoundError",
    "DuplicateEmailError",
    "ListingNotFoundError",
    "ListingAlreadySoldError",
    "UnsupportedMediaError",
    "PayloadTooLargeError",
    "UploadError",
    "PersistenceError",
]

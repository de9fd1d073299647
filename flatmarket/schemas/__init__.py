"""
Pydantic schemas for request/response validation.
"""

# Authentication schemas
from .auth import (
    RegisterRequest,
    LoginRequest,
    RegisterResponse,
    LoginResponse,
    CurrentUserResponse,
    ProfileImageResponse
)

# User schemas
from .user import (
    UserResponse,
    OwnerSummary
)

# Flat schemas
from .flat import (
    FlatCreateForm,
    MarkSoldRequest,
    FlatResponse,
    FlatEnvelope,
    FlatListResponse
)

__all__ = [
    # Authentication
    "RegisterRequest",
    "LoginRequest",
    "RegisterResponse",
    "LoginResponse",
    "CurrentUserResponse",
    "ProfileImageResponse",

    # User
    "UserResponse",
    "OwnerSummary",

    # Flat
    "FlatCreateForm",
    "MarkSoldRequest",
    "FlatResponse",
    "FlatEnvelope",
    "FlatListResponse"
]

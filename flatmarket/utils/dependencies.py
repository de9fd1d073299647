"""
FastAPI dependency injection utilities for authentication and database sessions.
Provides reusable dependencies for route protection and user extraction.
"""

from functools import lru_cache
from typing import Optional
from fastapi import Depends, Request
from fastapi.security import APIKeyHeader
from sqlalchemy.ext.asyncio import AsyncSession
from flatmarket.config import Settings, get_settings
from flatmarket.database import get_db
from flatmarket.models.user import User, UserRole
from flatmarket.services.auth import AuthService
from flatmarket.services.flat import FlatService
from flatmarket.services.storage import ObjectStorage, CloudinaryStorage
from flatmarket.utils.auth import extract_token
from flatmarket.utils.exceptions import (
    APIException,
    UnauthenticatedError,
    ForbiddenError,
    InternalError
)
import logging

logger = logging.getLogger(__name__)


# Session token header (raw token or "Bearer <token>")
auth_header = APIKeyHeader(name=get_settings().auth_header_name, auto_error=False)


def get_settings_dep() -> Settings:
    """Settings as a dependency, so tests can override them."""
    return get_settings()


@lru_cache()
def _cloudinary_storage() -> CloudinaryStorage:
    return CloudinaryStorage(get_settings())


def get_storage() -> ObjectStorage:
    """Process-wide image storage client."""
    return _cloudinary_storage()


async def get_auth_service(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings_dep),
    storage: ObjectStorage = Depends(get_storage)
) -> AuthService:
    """
    Get authentication service instance.

    Args:
        db: Database session
        settings: Application settings
        storage: Image storage client

    Returns:
        AuthService instance
    """
    return AuthService(db, settings, storage)


async def get_flat_service(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings_dep),
    storage: ObjectStorage = Depends(get_storage)
) -> FlatService:
    """
    Get flat service instance.

    Args:
        db: Database session
        settings: Application settings
        storage: Image storage client

    Returns:
        FlatService instance
    """
    return FlatService(db, settings, storage)


async def get_current_user(
    request: Request,
    header_value: Optional[str] = Depends(auth_header),
    auth_service: AuthService = Depends(get_auth_service)
) -> User:
    """
    Get current authenticated user from the session token.

    Args:
        request: Current request; the trimmed session identity is stored on its state
        header_value: Raw auth header value
        auth_service: Authentication service

    Returns:
        Current User object

    Raises:
        UnauthenticatedError: If no token is provided or the token is invalid or expired
        UserNotFoundError: If the token's user no longer exists
        InternalError: If the session could not be resolved
    """
    token = extract_token(header_value)
    if not token:
        raise UnauthenticatedError("No authentication token provided")

    try:
        user = await auth_service.resolve_session(token)
    except APIException:
        raise
    except Exception as e:
        logger.error(f"Session resolution failed: {type(e).__name__}", exc_info=True)
        raise InternalError("Authentication failed")

    request.state.user = user.to_session_dict()
    return user


async def get_current_admin_user(
    current_user: User = Depends(get_current_user)
) -> User:
    """
    Get current user with admin role.

    Raises:
        ForbiddenError: If user is not an admin
    """
    if current_user.role != UserRole.ADMIN:
        raise ForbiddenError("Admin access required")

    return current_user

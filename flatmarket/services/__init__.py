"""
Service layer for business logic implementation.
Contains services for authentication, flat listings, image storage and error handling.
"""

from .auth import AuthService
from .flat import FlatService
from .storage import ObjectStorage, CloudinaryStorage, upload_all
from .error_handler import ErrorHandlerService

__all__ = [
    "AuthService",
    "FlatService",
    "ObjectStorage",
    "CloudinaryStorage",
    "upload_all",
    "ErrorHandlerService"
]

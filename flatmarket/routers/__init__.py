"""
API route handlers for the Flat Market API.
Provides organized routing for different API endpoints.
"""

from .auth import router as auth_router
from .flats import router as flats_router
from .admin import router as admin_router

__all__ = ["auth_router", "flats_router", "admin_router"]

"""
Database models for the Flat Market API.
Includes User and Flat models with the listing lifecycle.
"""

from flatmarket.models.user import User, UserRole
from flatmarket.models.flat import Flat, FlatStatus, FLAT_TRANSITIONS

__all__ = [
    "User",
    "UserRole",
    "Flat",
    "FlatStatus",
    "FLAT_TRANSITIONS",
]

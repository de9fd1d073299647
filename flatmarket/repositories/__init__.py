"""
Repository layer for data access operations.
"""

from flatmarket.repositories.base import BaseRepository
from flatmarket.repositories.flat import FlatRepository
from flatmarket.repositories.user import UserRepository

__all__ = [
    "BaseRepository",
    "FlatRepository",
    "UserRepository"
]

"""
User repository for registration, lookup and profile updates.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from flatmarket.repositories.base import BaseRepository
from flatmarket.models.user import User
from flatmarket.utils.exceptions import DuplicateEmailError
from typing import Optional, Dict, Any
import uuid
import logging

logger = logging.getLogger(__name__)


class UserRepository(BaseRepository[User]):
    """
    Repository for user accounts.
    Email uniqueness is ultimately enforced by the unique index on users.email.
    """

    def __init__(self, db: AsyncSession):
        super().__init__(User, db)

    async def create_user(self, user_data: Dict[str, Any]) -> User:
        """
        Insert a user whose password has already been hashed.

        Args:
            user_data: Column values including ``hashed_password``

        Returns:
            Created user instance

        Raises:
            DuplicateEmailError: If the email is already taken
        """
        try:
            created_user = await self.create(user_data)
        except IntegrityError as e:
            logger.warning(f"Unique constraint rejected registration for {user_data.get('email')}: {e.orig}")
            raise DuplicateEmailError() from e

        logger.info(f"Created user: {created_user.email} (ID: {created_user.id})")
        return created_user

    async def get_by_email(self, email: str) -> Optional[User]:
        """
        Get user by email address.
        Matching is exact and case-sensitive.
        """
        return await self.get_by_field("email", email)

    async def email_exists(self, email: str) -> bool:
        """Check whether an email is already registered."""
        return await self.get_by_email(email) is not None

    async def update_profile_image(self, user_id: uuid.UUID, image_url: str) -> Optional[User]:
        """
        Point the user's profile image at a newly hosted URL.

        Returns:
            Updated user instance or None if not found
        """
        updated_user = await self.update(user_id, {"profile_image": image_url})

        if updated_user:
            logger.info(f"Profile image updated for user: {user_id}")

        return updated_user

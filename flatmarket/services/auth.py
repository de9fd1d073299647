"""
Authentication service for registration, login and session resolution.
Handles password hashing, session tokens, the break-glass admin login and profile images.
"""

from typing import Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError
from flatmarket.config import Settings
from flatmarket.repositories.user import UserRepository
from flatmarket.models.user import User, UserRole
from flatmarket.schemas.auth import RegisterRequest
from flatmarket.services.storage import (
    ObjectStorage,
    PROFILE_IMAGE_FOLDER,
    PROFILE_IMAGE_TRANSFORMATION
)
from flatmarket.utils.auth import PasswordHasher, TokenService, AdminBypassPolicy
from flatmarket.utils.file_utils import FileValidator, ImageUpload
from flatmarket.utils.validators import ValidationUtils
from flatmarket.utils.exceptions import (
    APIException,
    ValidationError,
    InvalidCredentialsError,
    InvalidTokenError,
    UnauthenticatedError,
    UserNotFoundError,
    DuplicateEmailError,
    PersistenceError
)
import asyncio
import uuid
import logging

logger = logging.getLogger(__name__)


REGISTRATION_FIELDS = ("name", "email", "password", "phone", "address", "postal_code")


class AuthService:
    """
    Authentication service for managing user accounts and sessions.
    Tokens carry the user's id and stored role; every request re-reads the user.
    """

    def __init__(self, db_session: AsyncSession, settings: Settings, storage: ObjectStorage):
        self.db = db_session
        self.settings = settings
        self.storage = storage
        self.user_repo = UserRepository(db_session)
        self.hasher = PasswordHasher(settings.bcrypt_rounds)
        self.tokens = TokenService(settings)
        self.bypass = AdminBypassPolicy(settings)

    async def register(
        self,
        data: RegisterRequest,
        profile_image: Optional[ImageUpload] = None
    ) -> User:
        """
        Register a new user.

        The profile image, if any, is hosted before the user row is written, so
        a failed upload leaves no account behind.

        Args:
            data: Registration form fields
            profile_image: Optional profile photo

        Returns:
            Created user instance

        Raises:
            ValidationError: If a required field is missing or malformed
            DuplicateEmailError: If the email is already registered
            UploadError: If the profile image could not be hosted
        """
        try:
            values = data.model_dump()
            ValidationUtils.require_fields(values, REGISTRATION_FIELDS, "All fields are required")
            email = ValidationUtils.validate_email_address(values["email"])

            if await self.user_repo.email_exists(email):
                logger.warning(f"Registration rejected for existing email: {email}")
                raise DuplicateEmailError()

            image_url = None
            if profile_image is not None:
                FileValidator.validate_image(profile_image, self.settings.max_image_size)
                image_url = await self.storage.upload(
                    profile_image,
                    PROFILE_IMAGE_FOLDER,
                    PROFILE_IMAGE_TRANSFORMATION
                )

            hashed_password = await asyncio.to_thread(self.hasher.hash, values["password"])

            user = await self.user_repo.create_user({
                "name": values["name"].strip(),
                "email": email,
                "hashed_password": hashed_password,
                "phone": values["phone"].strip(),
                "address": values["address"].strip(),
                "postal_code": values["postal_code"].strip(),
                "role": UserRole.USER,
                "profile_image": image_url,
            })

            logger.info(f"User registered: {user.email} (ID: {user.id})")
            return user

        except APIException:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Failed to register user: {e}")
            raise PersistenceError("Failed to register user", cause=str(e))

    async def login(self, email: Optional[str], password: Optional[str]) -> Tuple[User, str]:
        """
        Authenticate a user and issue a session token.

        Args:
            email: User's email address (exact match)
            password: Plain text password

        Returns:
            Tuple of (user, token)

        Raises:
            ValidationError: If email or password is missing
            UserNotFoundError: If no user has this email
            InvalidCredentialsError: If the password does not match
        """
        try:
            if ValidationUtils.is_blank(email) or not password:
                raise ValidationError("Email and password are required")

            raw_email = email
            email = email.strip()
            user = await self.user_repo.get_by_email(email)

            if not user:
                logger.warning(f"Login attempt for unknown email: {email}")
                raise UserNotFoundError()

            # The break-glass pair is compared against the email exactly as sent
            if self.bypass.matches(raw_email, password):
                logger.warning(f"Break-glass admin login used for: {email}")
            else:
                password_ok = await asyncio.to_thread(self.hasher.verify, password, user.hashed_password)
                if not password_ok:
                    logger.warning(f"Failed login attempt for email: {email}")
                    raise InvalidCredentialsError()

            token = self.tokens.issue(user.id, user.role)

            logger.info(f"User logged in: {user.email}")
            return user, token

        except APIException:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Login lookup failed for {email}: {e}")
            raise PersistenceError("Failed to log in", cause=str(e))

    async def resolve_session(self, token: str) -> User:
        """
        Get the user a session token belongs to.

        Args:
            token: Session token from the auth header

        Returns:
            The user, freshly read from the database

        Raises:
            UnauthenticatedError: If the token is invalid or expired
            UserNotFoundError: If the user no longer exists
        """
        try:
            claims = self.tokens.verify(token)
        except InvalidTokenError:
            raise UnauthenticatedError("Invalid or expired token")

        return await self.get_profile(claims.user_id)

    async def get_profile(self, user_id: uuid.UUID) -> User:
        """
        Get user by ID.

        Raises:
            UserNotFoundError: If user not found
        """
        try:
            user = await self.user_repo.get_by_id(user_id)
        except SQLAlchemyError as e:
            logger.error(f"Failed to get user by ID {user_id}: {e}")
            raise PersistenceError("Failed to retrieve user", cause=str(e))

        if not user:
            raise UserNotFoundError()

        return user

    async def update_profile_image(self, user_id: uuid.UUID, image: ImageUpload) -> User:
        """
        Replace the user's profile image.

        The stored reference only changes after the new image is hosted.

        Raises:
            ValidationError: If the image is empty
            UnsupportedMediaError: If the file is not an image
            PayloadTooLargeError: If the file is too large
            UploadError: If the image could not be hosted
            UserNotFoundError: If the user no longer exists
        """
        try:
            if image is None:
                raise ValidationError("Profile image is required")

            FileValidator.validate_image(image, self.settings.max_image_size)
            await self.get_profile(user_id)

            image_url = await self.storage.upload(
                image,
                PROFILE_IMAGE_FOLDER,
                PROFILE_IMAGE_TRANSFORMATION
            )

            updated_user = await self.user_repo.update_profile_image(user_id, image_url)
            if not updated_user:
                raise UserNotFoundError()

            return updated_user

        except APIException:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Failed to update profile image for user {user_id}: {e}")
            raise PersistenceError("Failed to update profile image", cause=str(e))

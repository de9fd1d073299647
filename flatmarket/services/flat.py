"""
Flat service for listing creation, feeds and the sale lifecycle.
Handles image validation and concurrent upload, ownership checks and status transitions.
"""

from typing import List, Optional, Sequence
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError
from flatmarket.config import Settings
from flatmarket.database import utcnow
from flatmarket.repositories.flat import FlatRepository
from flatmarket.models.flat import Flat, FlatStatus
from flatmarket.schemas.flat import FlatCreateForm
from flatmarket.services.storage import (
    ObjectStorage,
    FLAT_IMAGE_TRANSFORMATION,
    flat_image_folder,
    upload_all
)
from flatmarket.utils.file_utils import FileValidator, ImageUpload
from flatmarket.utils.validators import ValidationUtils, parse_amenities
from flatmarket.utils.exceptions import (
    APIException,
    ValidationError,
    ConflictError,
    ListingNotFoundError,
    ListingAlreadySoldError,
    PersistenceError
)
import uuid
import logging

logger = logging.getLogger(__name__)


LISTING_FIELDS = ("title", "address", "price")


class FlatService:
    """
    Flat service for managing listings and their lifecycle.
    Every listing starts ``pending``; ``sold`` is terminal.
    """

    def __init__(self, db_session: AsyncSession, settings: Settings, storage: ObjectStorage):
        self.db = db_session
        self.settings = settings
        self.storage = storage
        self.flat_repo = FlatRepository(db_session)

    async def create_flat(
        self,
        owner_id: uuid.UUID,
        data: FlatCreateForm,
        images: Sequence[ImageUpload]
    ) -> Flat:
        """
        Create a new listing in ``pending`` status.

        All images are validated before any upload starts, and the row is only
        written once every upload has succeeded.

        Args:
            owner_id: Listing owner's UUID
            data: Text fields of the form
            images: One to ``max_listing_images`` image files

        Returns:
            Created flat instance

        Raises:
            ValidationError: If fields are missing, the price is invalid or the image count is wrong
            UnsupportedMediaError: If a file is not an image
            PayloadTooLargeError: If a file is too large
            UploadError: If any image could not be hosted
        """
        try:
            values = data.model_dump()
            ValidationUtils.require_fields(values, LISTING_FIELDS, "Title, address and price are required")
            price = ValidationUtils.validate_price(values["price"])
            amenities = parse_amenities(values.get("amenities"))

            self._validate_images(images)

            urls = await upload_all(
                self.storage,
                images,
                flat_image_folder(owner_id),
                FLAT_IMAGE_TRANSFORMATION
            )

            flat = await self.flat_repo.create_flat({
                "user_id": owner_id,
                "title": values["title"].strip(),
                "address": values["address"].strip(),
                "price": price,
                "description": (values.get("description") or "").strip(),
                "images": urls,
                "amenities": amenities,
                "status": FlatStatus.PENDING,
            })

            logger.info(f"Flat created by user {owner_id}: {flat.title} with {len(urls)} images")
            return flat

        except APIException:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Failed to create flat for user {owner_id}: {e}")
            raise PersistenceError("Failed to create flat", cause=str(e))

    async def list_approved(self) -> List[Flat]:
        """Public feed: approved flats, newest first."""
        try:
            return await self.flat_repo.list_by_status(FlatStatus.APPROVED)
        except SQLAlchemyError as e:
            logger.error(f"Failed to list approved flats: {e}")
            raise PersistenceError("Failed to fetch flats", cause=str(e))

    async def list_owned(self, owner_id: uuid.UUID) -> List[Flat]:
        """Every flat the user has listed, in any status, newest first."""
        try:
            return await self.flat_repo.list_by_owner(owner_id)
        except SQLAlchemyError as e:
            logger.error(f"Failed to list flats for user {owner_id}: {e}")
            raise PersistenceError("Failed to fetch flats", cause=str(e))

    async def mark_sold(
        self,
        owner_id: uuid.UUID,
        flat_id: uuid.UUID,
        buyer_id: Optional[uuid.UUID] = None
    ) -> Flat:
        """
        Mark an owned flat as sold.

        Only the first successful call records the buyer and sale time; later
        calls fail without touching the row.

        Raises:
            ListingNotFoundError: If the flat does not exist or is owned by someone else
            ListingAlreadySoldError: If the flat is already sold
        """
        try:
            sold = await self.flat_repo.mark_sold(flat_id, owner_id, buyer_id, utcnow())
            flat = await self.flat_repo.get_owned(flat_id, owner_id)

            if not flat:
                raise ListingNotFoundError()

            if not sold:
                if flat.status.is_terminal:
                    logger.info(f"Flat {flat_id} already sold; rejecting repeat sale by {owner_id}")
                    raise ListingAlreadySoldError()
                raise ConflictError(f"Flat cannot be sold from status '{flat.status.value}'")

            logger.info(f"Flat {flat_id} marked sold by owner {owner_id}")
            return flat

        except APIException:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Failed to mark flat {flat_id} sold: {e}")
            raise PersistenceError("Failed to update flat", cause=str(e))

    async def approve_flat(self, flat_id: uuid.UUID) -> Flat:
        """
        Approve a pending flat so it appears in the public feed.

        Raises:
            ListingNotFoundError: If the flat does not exist
            ConflictError: If the flat is not pending
        """
        try:
            flat = await self.flat_repo.get_by_id(flat_id)
            if not flat:
                raise ListingNotFoundError("Flat not found")

            if not flat.status.can_transition_to(FlatStatus.APPROVED):
                raise ConflictError(f"Only pending flats can be approved (current status: '{flat.status.value}')")

            # Conditional on pending, so a concurrent sale wins over approval
            if not await self.flat_repo.set_status(flat_id, FlatStatus.PENDING, FlatStatus.APPROVED):
                flat = await self.flat_repo.get_by_id(flat_id)
                raise ConflictError(f"Only pending flats can be approved (current status: '{flat.status.value}')")

            flat = await self.flat_repo.get_by_id(flat_id)

            logger.info(f"Flat {flat_id} approved")
            return flat

        except APIException:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Failed to approve flat {flat_id}: {e}")
            raise PersistenceError("Failed to update flat", cause=str(e))

    def _validate_images(self, images: Sequence[ImageUpload]) -> None:
        """Check image count, then each file's type and size."""
        if not images:
            raise ValidationError("Please upload at least one image")

        max_images = self.settings.max_listing_images
        if len(images) > max_images:
            raise ValidationError(f"You can upload at most {max_images} images")

        for image in images:
            FileValidator.validate_image(image, self.settings.max_image_size)

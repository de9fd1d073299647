"""
File upload utilities for image validation.
Uploads are read into memory, checked, and handed to the image host as bytes.
"""

from dataclasses import dataclass
from typing import Optional
from fastapi import UploadFile

from flatmarket.utils.exceptions import (
    ValidationError,
    UnsupportedMediaError,
    PayloadTooLargeError
)


@dataclass(frozen=True)
class ImageUpload:
    """An image file received from a client, held in memory."""

    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


class FileValidator:
    """Utility class for file validation operations."""

    IMAGE_MEDIA_PREFIX = "image/"

    # Maximum file size (5MB by default)
    MAX_FILE_SIZE = 5 * 1024 * 1024

    @classmethod
    def validate_mime_type(cls, mime_type: Optional[str]) -> str:
        """
        Validate MIME type.

        Raises:
            UnsupportedMediaError: If the type is not an image type
        """
        if not mime_type or not mime_type.lower().startswith(cls.IMAGE_MEDIA_PREFIX):
            raise UnsupportedMediaError(mime_type)

        return mime_type

    @classmethod
    def validate_file_size(cls, file_size: int, max_size: Optional[int] = None) -> int:
        """
        Validate file size.

        Raises:
            ValidationError: If the file is empty
            PayloadTooLargeError: If file size exceeds limit
        """
        if file_size <= 0:
            raise ValidationError("Uploaded file is empty")

        max_allowed = max_size or cls.MAX_FILE_SIZE
        if file_size > max_allowed:
            raise PayloadTooLargeError(file_size, max_allowed)

        return file_size

    @classmethod
    def validate_image(cls, image: ImageUpload, max_size: Optional[int] = None) -> ImageUpload:
        """Run all checks on an in-memory image. Media type is checked first."""
        cls.validate_mime_type(image.content_type)
        cls.validate_file_size(image.size, max_size)
        return image


async def read_upload(file: UploadFile, max_size: int) -> ImageUpload:
    """
    Read and validate an uploaded image.

    At most ``max_size + 1`` bytes are read so oversized payloads are rejected
    without buffering the whole body.

    Args:
        file: FastAPI UploadFile object
        max_size: Maximum allowed size in bytes

    Returns:
        Validated ImageUpload
    """
    FileValidator.validate_mime_type(file.content_type)

    if file.size is not None and file.size > max_size:
        raise PayloadTooLargeError(file.size, max_size)

    await file.seek(0)
    data = await file.read(max_size + 1)

    image = ImageUpload(
        filename=file.filename or "upload",
        content_type=file.content_type,
        data=data
    )
    return FileValidator.validate_image(image, max_size)

"""
Image hosting service for profile and flat photos.
Wraps the Cloudinary SDK behind an async interface and provides the
concurrent multi-image upload used when a flat is created.
"""

import asyncio
import base64
import logging
from typing import Any, Dict, List, Sequence

import cloudinary
import cloudinary.uploader

from flatmarket.config import Settings
from flatmarket.utils.exceptions import UploadError
from flatmarket.utils.file_utils import ImageUpload

logger = logging.getLogger(__name__)


PROFILE_IMAGE_FOLDER = "profile_images"

PROFILE_IMAGE_TRANSFORMATION: List[Dict[str, Any]] = [
    {"width": 300, "height": 300, "crop": "fill", "gravity": "face"},
    {"quality": "auto:good"},
]

FLAT_IMAGE_TRANSFORMATION: List[Dict[str, Any]] = [
    {"width": 800, "height": 600, "crop": "fill"},
    {"quality": "auto:good"},
]


def flat_image_folder(owner_id) -> str:
    """Folder holding a user's flat photos."""
    return f"flats/{owner_id}"


class ObjectStorage:
    """Interface for a service that durably stores image bytes and returns a URL."""

    async def upload(
        self,
        image: ImageUpload,
        folder: str,
        transformation: List[Dict[str, Any]]
    ) -> str:
        """
        Store an image.

        Args:
            image: Validated in-memory image
            folder: Destination folder hint
            transformation: Host-side transformation steps

        Returns:
            Durable URL of the stored image

        Raises:
            UploadError: If the image could not be stored
        """
        raise NotImplementedError


class CloudinaryStorage(ObjectStorage):
    """Cloudinary-backed image storage."""

    def __init__(self, settings: Settings):
        self.timeout = settings.upload_timeout_seconds
        self.configured = all([
            settings.cloudinary_cloud_name,
            settings.cloudinary_api_key,
            settings.cloudinary_api_secret,
        ])

        if self.configured:
            cloudinary.config(
                cloud_name=settings.cloudinary_cloud_name,
                api_key=settings.cloudinary_api_key,
                api_secret=settings.cloudinary_api_secret,
                secure=True
            )
        else:
            logger.error("Cloudinary environment variables are not properly configured")

    async def upload(
        self,
        image: ImageUpload,
        folder: str,
        transformation: List[Dict[str, Any]]
    ) -> str:
        if not self.configured:
            raise UploadError(cause="Cloudinary is not configured")

        encoded = base64.b64encode(image.data).decode("ascii")
        data_uri = f"data:{image.content_type};base64,{encoded}"

        try:
            # The SDK is blocking; run it off the event loop
            result = await asyncio.wait_for(
                asyncio.to_thread(
                    cloudinary.uploader.upload,
                    data_uri,
                    folder=folder,
                    transformation=transformation,
                    resource_type="image"
                ),
                timeout=self.timeout
            )
        except asyncio.TimeoutError as e:
            logger.error(f"Cloudinary upload timed out after {self.timeout}s: {image.filename}")
            raise UploadError(cause="Upload timed out") from e
        except Exception as e:
            logger.error(f"Cloudinary upload failed for {image.filename}: {e}", exc_info=True)
            raise UploadError(cause=str(e)) from e

        url = (result or {}).get("secure_url")
        if not url:
            raise UploadError(cause="Image host returned no URL")

        logger.info(f"Uploaded {image.filename} ({image.size} bytes) to {folder}")
        return url


async def upload_all(
    storage: ObjectStorage,
    images: Sequence[ImageUpload],
    folder: str,
    transformation: List[Dict[str, Any]]
) -> List[str]:
    """
    Upload several images concurrently and wait for all of them.

    URLs are returned in the order the images were given, regardless of the
    order in which uploads complete. If any upload fails, the failure with the
    lowest index is raised as an UploadError after every upload has finished.
    """
    results = await asyncio.gather(
        *(storage.upload(image, folder, transformation) for image in images),
        return_exceptions=True
    )

    failures = [(index, result) for index, result in enumerate(results) if isinstance(result, BaseException)]
    if failures:
        index, error = failures[0]
        logger.error(f"{len(failures)} of {len(images)} image uploads failed; first failure at index {index}: {error}")
        if isinstance(error, UploadError):
            raise UploadError("Failed to upload one or more images", cause=error.cause) from error
        raise UploadError("Failed to upload one or more images", cause=str(error)) from error

    return list(results)

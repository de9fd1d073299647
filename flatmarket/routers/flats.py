"""
Flat listing API endpoints.
Provides listing creation with images, the public approved feed, the owner's
dashboard and marking a flat as sold.
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from flatmarket.config import Settings
from flatmarket.models.user import User
from flatmarket.services.flat import FlatService
from flatmarket.services.error_handler import ERROR_RESPONSES
from flatmarket.schemas.flat import (
    FlatCreateForm,
    FlatEnvelope,
    FlatListResponse,
    FlatResponse,
    MarkSoldRequest
)
from flatmarket.utils.dependencies import (
    get_current_user,
    get_flat_service,
    get_settings_dep
)
from flatmarket.utils.file_utils import read_upload
import uuid


router = APIRouter(prefix="/flat", tags=["Flats"])


@router.post(
    "/createFlat",
    response_model=FlatEnvelope,
    status_code=status.HTTP_201_CREATED,
    summary="Create flat listing",
    description="Create a pending listing with one to five images (multipart form)",
    responses={code: ERROR_RESPONSES[code] for code in (400, 401, 500)}
)
async def create_flat(
    title: Optional[str] = Form(None),
    address: Optional[str] = Form(None),
    price: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    amenities: Optional[str] = Form(None, description="JSON array of amenity labels"),
    images: Optional[List[UploadFile]] = File(None, description="Flat photos"),
    current_user: User = Depends(get_current_user),
    flat_service: FlatService = Depends(get_flat_service),
    settings: Settings = Depends(get_settings_dep)
) -> FlatEnvelope:
    """
    Create a new flat listing owned by the current user.

    Returns:
        The created flat in ``pending`` status
    """
    form = FlatCreateForm(
        title=title,
        address=address,
        price=price,
        description=description,
        amenities=amenities
    )

    uploads = [upload for upload in (images or []) if upload.filename]
    image_files = [await read_upload(upload, settings.max_image_size) for upload in uploads]

    flat = await flat_service.create_flat(current_user.id, form, image_files)

    return FlatEnvelope(
        message="Flat created successfully",
        flat=FlatResponse.model_validate(flat.to_dict())
    )


@router.get(
    "/getApprove",
    response_model=FlatListResponse,
    status_code=status.HTTP_200_OK,
    summary="List approved flats",
    description="Public feed of approved flats, newest first, with owner contact details"
)
async def get_approved_flats(
    flat_service: FlatService = Depends(get_flat_service)
) -> FlatListResponse:
    """Get every approved flat."""
    flats = await flat_service.list_approved()

    return FlatListResponse(
        message="Approved flats fetched successfully",
        flats=[FlatResponse.model_validate(flat.to_dict(include_owner=True)) for flat in flats]
    )


@router.get(
    "/getFlats",
    response_model=FlatListResponse,
    status_code=status.HTTP_200_OK,
    summary="List my flats",
    description="Every flat the authenticated user has listed, in any status, newest first",
    responses={401: ERROR_RESPONSES[401]}
)
async def get_my_flats(
    current_user: User = Depends(get_current_user),
    flat_service: FlatService = Depends(get_flat_service)
) -> FlatListResponse:
    """Get the current user's flats."""
    flats = await flat_service.list_owned(current_user.id)

    return FlatListResponse(
        message="Flats fetched successfully",
        flats=[FlatResponse.model_validate(flat.to_dict()) for flat in flats]
    )


@router.put(
    "/{flat_id}/sold",
    response_model=FlatEnvelope,
    status_code=status.HTTP_200_OK,
    summary="Mark flat as sold",
    description="Mark an owned flat as sold, optionally recording the buyer",
    responses={code: ERROR_RESPONSES[code] for code in (401, 404, 409)}
)
async def mark_flat_sold(
    flat_id: uuid.UUID,
    sale: Optional[MarkSoldRequest] = None,
    current_user: User = Depends(get_current_user),
    flat_service: FlatService = Depends(get_flat_service)
) -> FlatEnvelope:
    """
    Mark a flat as sold.

    Raises:
        ListingNotFoundError: If the flat does not exist or is not the caller's
        ListingAlreadySoldError: If the flat was already sold
    """
    buyer_id = sale.sold_to_user_id if sale else None
    flat = await flat_service.mark_sold(current_user.id, flat_id, buyer_id)

    return FlatEnvelope(
        message="Flat marked as sold",
        flat=FlatResponse.model_validate(flat.to_dict())
    )

"""
Admin moderation endpoints.
"""

from fastapi import APIRouter, Depends, status
from flatmarket.models.user import User
from flatmarket.services.flat import FlatService
from flatmarket.services.error_handler import ERROR_RESPONSES
from flatmarket.schemas.flat import FlatEnvelope, FlatResponse
from flatmarket.utils.dependencies import get_current_admin_user, get_flat_service
import logging
import uuid

logger = logging.getLogger(__name__)


router = APIRouter(prefix="/admin", tags=["Admin"])


@router.put(
    "/flat/{flat_id}/approve",
    response_model=FlatEnvelope,
    status_code=status.HTTP_200_OK,
    summary="Approve flat",
    description="Move a pending flat to approved so it appears in the public feed",
    responses={code: ERROR_RESPONSES[code] for code in (401, 403, 404, 409)}
)
async def approve_flat(
    flat_id: uuid.UUID,
    admin_user: User = Depends(get_current_admin_user),
    flat_service: FlatService = Depends(get_flat_service)
) -> FlatEnvelope:
    """Approve a pending flat."""
    flat = await flat_service.approve_flat(flat_id)
    logger.info(f"Flat {flat_id} approved by admin {admin_user.email}")

    return FlatEnvelope(
        message="Flat approved successfully",
        flat=FlatResponse.model_validate(flat.to_dict())
    )

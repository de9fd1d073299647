"""
Pydantic schemas for flat listing requests and responses.
"""

from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from flatmarket.models.flat import FlatStatus
from flatmarket.schemas.user import OwnerSummary
import uuid


class FlatCreateForm(BaseModel):
    """
    Text fields of the multipart create-flat form.
    Price and amenities arrive as raw text and are parsed by the service.
    """

    title: Optional[str] = Field(None, description="Listing title", examples=["2BHK near the lake"])
    address: Optional[str] = Field(None, description="Flat address", examples=["4 Lake Road, Pune"])
    price: Optional[str] = Field(None, description="Asking price", examples=["4500000"])
    description: Optional[str] = Field(None, description="Free-form description")
    amenities: Optional[str] = Field(
        None,
        description="JSON array of amenity labels",
        examples=['["parking", "lift"]']
    )


class MarkSoldRequest(BaseModel):
    """Body of the mark-sold request."""

    sold_to_user_id: Optional[uuid.UUID] = Field(
        None,
        description="Buyer's user ID, if known"
    )


class FlatResponse(BaseModel):
    """Flat listing as returned by the API."""

    id: str = Field(..., description="Flat's unique identifier")
    user_id: str = Field(..., description="Owner's user ID")
    title: str
    address: str
    price: float = Field(..., description="Asking price", examples=[4500000.0])
    description: str = ""
    images: List[str] = Field(default_factory=list, description="Hosted image URLs in submission order")
    amenities: List[str] = Field(default_factory=list)
    status: FlatStatus = Field(..., description="Lifecycle status", examples=["pending"])
    sold_to_user_id: Optional[str] = None
    sold_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    owner: Optional[OwnerSummary] = Field(
        None,
        description="Public owner details (approved listings only)"
    )


class FlatEnvelope(BaseModel):
    """Response wrapping a single flat."""

    success: bool = True
    message: str
    flat: FlatResponse


class FlatListResponse(BaseModel):
    """Response wrapping a list of flats."""

    success: bool = True
    message: str
    flats: List[FlatResponse]

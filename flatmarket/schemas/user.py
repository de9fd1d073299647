"""
Pydantic schemas for user responses.
Password hashes are never part of any user schema.
"""

from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from flatmarket.models.user import UserRole


class UserResponse(BaseModel):
    """User response schema (excluding sensitive data)."""

    id: str = Field(
        ...,
        description="User's unique identifier",
        examples=["123e4567-e89b-12d3-a456-426614174000"]
    )
    name: str = Field(
        ...,
        description="User's name",
        examples=["Asha Verma"]
    )
    email: str = Field(
        ...,
        description="User's email address",
        examples=["asha@example.com"]
    )
    phone: str = Field(
        ...,
        description="Contact phone number",
        examples=["+91 98765 43210"]
    )
    address: str = Field(
        ...,
        description="Postal address",
        examples=["12 Park Street, Kolkata"]
    )
    postal_code: str = Field(
        ...,
        description="Postal code",
        examples=["700016"]
    )
    role: UserRole = Field(
        ...,
        description="User's role",
        examples=["user"]
    )
    profile_image: Optional[str] = Field(
        None,
        description="Hosted profile image URL"
    )
    created_at: Optional[datetime] = Field(
        None,
        description="Account creation timestamp"
    )
    updated_at: Optional[datetime] = Field(
        None,
        description="Last update timestamp"
    )


class OwnerSummary(BaseModel):
    """Public owner details shown alongside approved flats."""

    id: str
    name: str
    email: str
    address: str
    phone: str

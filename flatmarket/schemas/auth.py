"""
Pydantic schemas for authentication requests and responses.
Handles registration, login, and current-user payloads.
"""

from pydantic import BaseModel, Field
from typing import Optional
from flatmarket.schemas.user import UserResponse


class RegisterRequest(BaseModel):
    """
    Registration form fields.
    Fields are optional here so missing values are reported together by the
    service rather than one by one.
    """

    name: Optional[str] = Field(None, description="User's name", examples=["Asha Verma"])
    email: Optional[str] = Field(None, description="User's email address", examples=["asha@example.com"])
    password: Optional[str] = Field(None, description="Plain text password")
    phone: Optional[str] = Field(None, description="Contact phone number", examples=["+91 98765 43210"])
    address: Optional[str] = Field(None, description="Postal address", examples=["12 Park Street, Kolkata"])
    postal_code: Optional[str] = Field(None, description="Postal code", examples=["700016"])


class LoginRequest(BaseModel):
    """Login request schema."""

    email: Optional[str] = Field(
        None,
        description="User's email address",
        examples=["asha@example.com"]
    )
    password: Optional[str] = Field(
        None,
        description="User's password",
        examples=["p1"]
    )


class RegisterResponse(BaseModel):
    """Response returned after a successful registration."""

    success: bool = True
    message: str = Field(..., examples=["User Registered Successfully"])
    user: UserResponse


class LoginResponse(BaseModel):
    """Complete login response schema."""

    success: bool = True
    message: str = Field(..., examples=["User LoggedIn Successfully"])
    token: str = Field(
        ...,
        description="Session token; send it back in the auth-token header",
        examples=["eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9..."]
    )
    user: UserResponse


class CurrentUserResponse(BaseModel):
    """Current user response."""

    success: bool = True
    message: str = "Fetched current user"
    user: UserResponse


class ProfileImageResponse(BaseModel):
    """Response returned after replacing the profile image."""

    success: bool = True
    message: str = Field(..., examples=["Profile image updated successfully"])
    user: UserResponse

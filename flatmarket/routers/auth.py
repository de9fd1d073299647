"""
Authentication API endpoints for registration, login and the current user's profile.
Sessions are carried in the auth-token header.
"""

from typing import Optional
from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from flatmarket.config import Settings
from flatmarket.models.user import User
from flatmarket.services.auth import AuthService
from flatmarket.services.error_handler import ERROR_RESPONSES
from flatmarket.schemas.auth import (
    RegisterRequest,
    RegisterResponse,
    LoginRequest,
    LoginResponse,
    CurrentUserResponse,
    ProfileImageResponse
)
from flatmarket.schemas.user import UserResponse
from flatmarket.utils.dependencies import (
    get_auth_service,
    get_current_user,
    get_settings_dep
)
from flatmarket.utils.exceptions import ValidationError
from flatmarket.utils.file_utils import read_upload


router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register",
    description="Create an account from a multipart form with an optional profile image",
    responses={code: ERROR_RESPONSES[code] for code in (400, 409, 500)}
)
async def register(
    name: Optional[str] = Form(None),
    email: Optional[str] = Form(None),
    password: Optional[str] = Form(None),
    phone: Optional[str] = Form(None),
    address: Optional[str] = Form(None),
    postal_code: Optional[str] = Form(None),
    profileImage: Optional[UploadFile] = File(None, description="Optional profile photo"),
    auth_service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings_dep)
) -> RegisterResponse:
    """
    Register a new user.

    Returns:
        The created user, without the password hash
    """
    data = RegisterRequest(
        name=name,
        email=email,
        password=password,
        phone=phone,
        address=address,
        postal_code=postal_code
    )

    profile_image = None
    if profileImage is not None and profileImage.filename:
        profile_image = await read_upload(profileImage, settings.max_image_size)

    user = await auth_service.register(data, profile_image)

    return RegisterResponse(
        message="User Registered Successfully",
        user=UserResponse.model_validate(user.to_dict())
    )


@router.post(
    "/login",
    response_model=LoginResponse,
    status_code=status.HTTP_200_OK,
    summary="User login",
    description="Authenticate with email and password and receive a 24 hour session token",
    responses={code: ERROR_RESPONSES[code] for code in (400, 404)}
)
async def login(
    login_data: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service)
) -> LoginResponse:
    """
    Authenticate user and return a session token.

    Raises:
        ValidationError: If email or password is missing
        UserNotFoundError: If the email is not registered
        InvalidCredentialsError: If the password is wrong
    """
    user, token = await auth_service.login(
        email=login_data.email,
        password=login_data.password
    )

    return LoginResponse(
        message="User LoggedIn Successfully",
        token=token,
        user=UserResponse.model_validate(user.to_dict())
    )


@router.get(
    "/me",
    response_model=CurrentUserResponse,
    status_code=status.HTTP_200_OK,
    summary="Get current user",
    description="Get the full profile of the authenticated user",
    responses={code: ERROR_RESPONSES[code] for code in (401, 404)}
)
async def get_current_user_info(
    current_user: User = Depends(get_current_user)
) -> CurrentUserResponse:
    """Get current authenticated user information."""
    return CurrentUserResponse(user=UserResponse.model_validate(current_user.to_dict()))


@router.post(
    "/updateProfileImage",
    response_model=ProfileImageResponse,
    status_code=status.HTTP_200_OK,
    summary="Update profile image",
    description="Replace the authenticated user's profile image",
    responses={code: ERROR_RESPONSES[code] for code in (400, 401, 500)}
)
async def update_profile_image(
    profileImage: Optional[UploadFile] = File(None, description="New profile photo"),
    current_user: User = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings_dep)
) -> ProfileImageResponse:
    """
    Upload a new profile image and point the profile at it.

    Raises:
        ValidationError: If no file was sent
    """
    if profileImage is None or not profileImage.filename:
        raise ValidationError("Profile image is required")

    image = await read_upload(profileImage, settings.max_image_size)
    user = await auth_service.update_profile_image(current_user.id, image)

    return ProfileImageResponse(
        message="Profile image updated successfully",
        user=UserResponse.model_validate(user.to_dict())
    )

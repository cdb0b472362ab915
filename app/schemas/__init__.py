"""Pydantic schemas for request/response validation."""
from app.schemas.user import (
    RegisterRequest,
    UserLoginRequest,
    ProfileUpdateRequest,
    AdminCreateUserRequest,
    AdminUpdateUserRequest,
    UserData,
    AccessTokenResponse,
    LoginResponse,
)
from app.schemas.response import ApiResponse

__all__ = [
    # User schemas
    "RegisterRequest",
    "UserLoginRequest",
    "ProfileUpdateRequest",
    "AdminCreateUserRequest",
    "AdminUpdateUserRequest",
    "UserData",
    "AccessTokenResponse",
    "LoginResponse",
    # Response wrapper
    "ApiResponse",
]

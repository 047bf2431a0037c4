"""Pydantic schemas for API requests and responses."""

from src.schemas.admin import AdminStats, RoleUpdate
from src.schemas.auth import (
    AuthResponse,
    GuestResponse,
    MessageResponse,
    UserLogin,
    UserRegister,
    UserResponse,
)
from src.schemas.product import IdentificationResponse, IdentifyRequest, ProductResponse
from src.schemas.profile import (
    ChangePasswordRequest,
    PasswordResetConfirm,
    PasswordResetRequest,
    ProfilePictureResponse,
    ProfileUpdate,
)

__all__ = [
    "UserRegister",
    "UserLogin",
    "AuthResponse",
    "GuestResponse",
    "UserResponse",
    "MessageResponse",
    "IdentifyRequest",
    "ProductResponse",
    "IdentificationResponse",
    "ProfileUpdate",
    "ChangePasswordRequest",
    "ProfilePictureResponse",
    "PasswordResetRequest",
    "PasswordResetConfirm",
    "RoleUpdate",
    "AdminStats",
]

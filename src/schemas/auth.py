"""Authentication schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from src.models.enums import UserRole


class UserRegister(BaseModel):
    """User registration request."""

    username: str = Field(..., min_length=3, max_length=255)
    email: EmailStr = Field(..., max_length=255)
    password: str = Field(..., min_length=8, max_length=128)


class UserLogin(BaseModel):
    """User login request."""

    username: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1, max_length=128)


class AuthResponse(BaseModel):
    """Authentication response with token and user info."""

    access_token: str
    token_type: str = "bearer"  # noqa: S105
    user: "UserResponse"


class GuestResponse(BaseModel):
    """Guest session token."""

    access_token: str
    token_type: str = "bearer"  # noqa: S105
    guest: bool = True
    created_at: datetime


class UserResponse(BaseModel):
    """User information response. Never includes the password hash."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str
    is_verified: bool
    role: UserRole
    profile_picture: str | None = None
    is_deleted: bool = False
    created_at: datetime


class MessageResponse(BaseModel):
    """Plain message response."""

    message: str

"""Profile and password schemas."""

from pydantic import BaseModel, EmailStr, Field


class ProfileUpdate(BaseModel):
    """Update the current user's profile."""

    username: str | None = Field(None, min_length=3, max_length=255)
    email: EmailStr | None = Field(None, max_length=255)


class ChangePasswordRequest(BaseModel):
    """Change password for the current user."""

    current_password: str = Field(..., min_length=1, max_length=128)
    new_password: str = Field(..., min_length=8, max_length=128)


class ProfilePictureResponse(BaseModel):
    """Stored profile picture location."""

    profile_picture: str


class PasswordResetRequest(BaseModel):
    """Request a password reset email."""

    email: EmailStr


class PasswordResetConfirm(BaseModel):
    """Reset a password with an emailed token."""

    token: str = Field(..., min_length=1)
    password: str = Field(..., min_length=8, max_length=128)

"""Profile API endpoints for the current user."""

import io
import logging
import secrets
import time
from pathlib import Path
from typing import Annotated

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from PIL import Image, UnidentifiedImageError
from sqlalchemy.orm import Session

from src.api.dependencies import get_current_user
from src.config import get_settings
from src.database import get_db
from src.models.user import User
from src.schemas.auth import MessageResponse, UserResponse
from src.schemas.profile import ChangePasswordRequest, ProfilePictureResponse, ProfileUpdate
from src.services.auth import (
    get_password_hash,
    get_user_by_email,
    get_user_by_username,
    verify_password,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/profile", tags=["profile"])

# Pillow format name -> stored file extension
ALLOWED_IMAGE_FORMATS = {
    "PNG": ".png",
    "JPEG": ".jpg",
    "GIF": ".gif",
    "WEBP": ".webp",
}


def detect_image_suffix(data: bytes) -> str | None:
    """Return the file extension for an allowed image, or None if the bytes are not one."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.verify()
            image_format = img.format
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError):
        return None
    return ALLOWED_IMAGE_FORMATS.get(image_format or "")


@router.get("", response_model=UserResponse)
def get_profile(
    current_user: Annotated[User, Depends(get_current_user)],
):
    """Get the current user's profile."""
    return current_user


@router.put("", response_model=UserResponse)
def update_profile(
    profile_data: ProfileUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
):
    """Update username and/or email."""
    if profile_data.username:
        existing = get_user_by_username(db, profile_data.username)
        if existing and existing.id != current_user.id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="Username already in use"
            )
        current_user.username = profile_data.username

    if profile_data.email:
        existing = get_user_by_email(db, profile_data.email)
        if existing and existing.id != current_user.id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="Email already in use"
            )
        current_user.email = profile_data.email

    db.commit()
    db.refresh(current_user)
    return current_user


@router.post("/picture", response_model=ProfilePictureResponse)
async def upload_profile_picture(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
    profile_picture: UploadFile = File(...),
):
    """Upload a profile picture (images only, 5 MB max)."""
    settings = get_settings()

    if not (profile_picture.content_type or "").startswith("image/"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Only image files are allowed"
        )

    data = await profile_picture.read(settings.max_upload_bytes + 1)
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file uploaded")
    if len(data) > settings.max_upload_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail="File too large"
        )

    suffix = detect_image_suffix(data)
    if suffix is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only PNG, JPEG, GIF and WebP images are allowed",
        )

    upload_dir = Path(settings.upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)
    filename = f"{int(time.time() * 1000)}-{secrets.token_hex(8)}{suffix}"
    (upload_dir / filename).write_bytes(data)

    current_user.profile_picture = f"/uploads/{filename}"
    db.commit()

    logger.info(f"Stored profile picture {filename} for user ID: {current_user.id}")
    return ProfilePictureResponse(profile_picture=current_user.profile_picture)


@router.post("/change-password", response_model=MessageResponse)
def change_password(
    password_data: ChangePasswordRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
):
    """Change the current user's password."""
    if not verify_password(password_data.current_password, current_user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Current password is incorrect"
        )

    current_user.password_hash = get_password_hash(password_data.new_password)
    db.commit()
    return MessageResponse(message="Password changed successfully")


@router.delete("", response_model=MessageResponse)
def delete_account(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
):
    """Delete the current user's account and all of their products."""
    user_id = current_user.id
    db.delete(current_user)
    db.commit()

    logger.info(f"Deleted account (ID: {user_id})")
    return MessageResponse(message="Account deleted successfully")

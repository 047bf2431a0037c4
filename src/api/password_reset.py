"""Password reset endpoints."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from src.database import get_db
from src.exceptions import EmailError
from src.models.user import User
from src.schemas.auth import MessageResponse
from src.schemas.profile import PasswordResetConfirm, PasswordResetRequest
from src.services.auth import generate_token, get_password_hash, get_user_by_email
from src.services.email import EmailService, get_email_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/reset-password", tags=["password-reset"])

# Same answer whether or not the email is registered
RESET_REQUESTED_MESSAGE = "If your email is registered, you will receive a reset link"


@router.post("/request", response_model=MessageResponse)
def request_password_reset(
    reset_data: PasswordResetRequest,
    db: Annotated[Session, Depends(get_db)],
    email_service: Annotated[EmailService, Depends(get_email_service)],
):
    """Issue a single-use reset token and email it."""
    user = get_user_by_email(db, reset_data.email)
    if not user or user.is_deleted:
        return MessageResponse(message=RESET_REQUESTED_MESSAGE)

    # Replaces any earlier token
    user.reset_token = generate_token()
    db.commit()

    try:
        email_service.send_password_reset_email(user.email, user.reset_token, user.username)
    except EmailError as e:
        logger.error(f"Failed to send password reset email to user {user.id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to send reset email",
        ) from e

    return MessageResponse(message=RESET_REQUESTED_MESSAGE)


@router.post("/reset", response_model=MessageResponse)
def reset_password(
    reset_data: PasswordResetConfirm,
    db: Annotated[Session, Depends(get_db)],
):
    """Set a new password and consume the reset token."""
    user = db.query(User).filter(User.reset_token == reset_data.token).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Invalid or expired reset token"
        )

    user.password_hash = get_password_hash(reset_data.password)
    user.reset_token = None
    db.commit()

    logger.info(f"Password reset for user ID: {user.id}")
    return MessageResponse(message="Password reset successful")

"""Authentication API endpoints."""

import logging
import secrets
from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Cookie, Depends, HTTPException, Query, Response, status
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from src.api.dependencies import get_session_identity
from src.config import get_settings
from src.database import get_db
from src.exceptions import EmailError
from src.models.user import User
from src.schemas.auth import (
    AuthResponse,
    GuestResponse,
    MessageResponse,
    UserLogin,
    UserRegister,
    UserResponse,
)
from src.services.auth import (
    OAUTH_STATE_COOKIE,
    OAUTH_STATE_EXPIRATION_MINUTES,
    OAuthVerifier,
    PasswordVerifier,
    create_access_token,
    create_guest_token,
    create_oauth_state_token,
    create_user,
    generate_token,
    get_user_by_email,
    get_user_by_username,
    verify_oauth_state,
)
from src.services.email import EmailService, get_email_service
from src.services.identity import Authenticated, Guest, SessionIdentity

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["auth"])


def _auth_response(user: User) -> AuthResponse:
    return AuthResponse(
        access_token=create_access_token(user.id, user.username),
        user=UserResponse.model_validate(user),
    )


@router.post("/register", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
def register(
    user_data: UserRegister,
    db: Annotated[Session, Depends(get_db)],
    email_service: Annotated[EmailService, Depends(get_email_service)],
):
    """Register a new user and send a verification email. Does not log in."""
    if get_user_by_username(db, user_data.username):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username already exists",
        )
    if get_user_by_email(db, user_data.email):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already exists",
        )

    verification_token = generate_token()
    user = create_user(
        db,
        user_data.username,
        user_data.email,
        user_data.password,
        verification_token=verification_token,
    )

    # Registration still succeeds if the email cannot be sent
    try:
        email_service.send_verification_email(user.email, verification_token, user.username)
    except EmailError as e:
        logger.error(f"Failed to send verification email to user {user.id}: {e}")

    return MessageResponse(
        message="Registration successful! Please check your email to verify your account."
    )


@router.get("/verify-email", response_model=MessageResponse)
def verify_email(
    db: Annotated[Session, Depends(get_db)],
    token: str | None = Query(default=None),
):
    """Consume a verification token and mark the account verified."""
    if not token:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid verification token",
        )

    user = db.query(User).filter(User.verification_token == token).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Verification token not found or already used",
        )

    user.is_verified = True
    user.verification_token = None
    db.commit()

    logger.info(f"User verified: {user.username} (ID: {user.id})")
    return MessageResponse(message="Email verified successfully. You can now log in.")


@router.post("/login", response_model=AuthResponse)
async def login(
    credentials: UserLogin,
    db: Annotated[Session, Depends(get_db)],
):
    """Login with username and password."""
    user = PasswordVerifier(db).verify(credentials.username, credentials.password)

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    logger.info(f"User logged in: {user.username} (ID: {user.id})")
    return _auth_response(user)


@router.post("/guest", response_model=GuestResponse)
async def guest_login():
    """Start a guest session. Guest results are never saved."""
    created_at = datetime.now(UTC)
    return GuestResponse(access_token=create_guest_token(created_at), created_at=created_at)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    identity: Annotated[SessionIdentity, Depends(get_session_identity)],
):
    """Logout (client should discard token)."""
    if isinstance(identity, Authenticated):
        logger.info(f"User logged out (ID: {identity.user_id})")
    elif isinstance(identity, Guest):
        logger.info("Guest session ended")
    return MessageResponse(message="Logged out successfully")


@router.get("/user")
async def get_me(
    identity: Annotated[SessionIdentity, Depends(get_session_identity)],
    db: Annotated[Session, Depends(get_db)],
):
    """Get the current user, or the guest marker for guest sessions."""
    if isinstance(identity, Guest):
        return {"guest": True, "created_at": identity.created_at}
    if isinstance(identity, Authenticated):
        user = db.query(User).filter(User.id == identity.user_id).first()
        if user is not None:
            return UserResponse.model_validate(user)
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
        headers={"WWW-Authenticate": "Bearer"},
    )


@router.get("/auth/github")
async def github_login(db: Annotated[Session, Depends(get_db)]):
    """Redirect to GitHub for OAuth login."""
    settings = get_settings()
    verifier = OAuthVerifier(db, settings)
    if not verifier.is_configured:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="GitHub login disabled")

    state = secrets.token_urlsafe(16)
    response = RedirectResponse(verifier.authorize_url(state=state))
    response.set_cookie(
        OAUTH_STATE_COOKIE,
        create_oauth_state_token(state),
        max_age=OAUTH_STATE_EXPIRATION_MINUTES * 60,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )
    return response


@router.get("/auth/github/callback", response_model=AuthResponse)
async def github_callback(
    response: Response,
    db: Annotated[Session, Depends(get_db)],
    code: str | None = Query(default=None),
    state: str | None = Query(default=None),
    state_token: Annotated[str | None, Cookie(alias=OAUTH_STATE_COOKIE)] = None,
):
    """Complete GitHub OAuth login and issue a token."""
    verifier = OAuthVerifier(db, get_settings())
    if not verifier.is_configured:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="GitHub login disabled")
    if not verify_oauth_state(state_token, state):
        logger.warning("GitHub callback rejected: OAuth state mismatch")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid OAuth state")
    response.delete_cookie(OAUTH_STATE_COOKIE)
    if not code:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Missing authorization code"
        )

    user = await verifier.verify(code)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="GitHub authentication failed",
        )

    logger.info(f"User logged in with GitHub: {user.username} (ID: {user.id})")
    return _auth_response(user)

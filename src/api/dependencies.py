"""FastAPI dependencies for identity, authentication and services."""

from datetime import datetime
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from src.database import get_db
from src.exceptions import ForbiddenError
from src.models.user import User
from src.services.auth import decode_access_token
from src.services.classifier import ProductClassifier, get_product_classifier
from src.services.identification import IdentificationService
from src.services.identity import Anonymous, Authenticated, Guest, SessionIdentity
from src.services.ocr import TextExtractor, get_text_extractor
from src.services.storage import ProductRepository

security = HTTPBearer(auto_error=False)


def get_session_identity(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[Session, Depends(get_db)],
) -> SessionIdentity:
    """Resolve the caller as anonymous, guest or authenticated."""
    if credentials is None:
        return Anonymous()

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        return Anonymous()

    if payload.get("guest") is True:
        try:
            created_at = datetime.fromisoformat(payload["created_at"])
        except (KeyError, TypeError, ValueError):
            return Anonymous()
        return Guest(created_at=created_at)

    user_id = payload.get("sub")
    if user_id is None:
        return Anonymous()

    try:
        user = db.query(User).filter(User.id == int(user_id)).first()
    except ValueError:
        return Anonymous()
    if user is None or user.is_deleted:
        return Anonymous()

    return Authenticated(user_id=user.id)


def get_current_user(
    identity: Annotated[SessionIdentity, Depends(get_session_identity)],
    db: Annotated[Session, Depends(get_db)],
) -> User:
    """Get the current authenticated user. Guests and anonymous callers get a 401."""
    if not isinstance(identity, Authenticated):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = db.query(User).filter(User.id == identity.user_id).first()
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user


def get_admin_user(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    """Require the current user to have the admin role."""
    if not current_user.is_admin:
        raise ForbiddenError("Access denied: Admin role required")
    return current_user


def get_product_repository(
    db: Annotated[Session, Depends(get_db)],
) -> ProductRepository:
    """Get the product persistence gateway for this request."""
    return ProductRepository(db)


def get_identification_service(
    extractor: Annotated[TextExtractor, Depends(get_text_extractor)],
    classifier: Annotated[ProductClassifier, Depends(get_product_classifier)],
    repository: Annotated[ProductRepository, Depends(get_product_repository)],
) -> IdentificationService:
    """Get identification service with dependencies."""
    return IdentificationService(extractor, classifier, repository)

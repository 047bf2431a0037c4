"""Product identification and lookup endpoints."""

import logging
from typing import Annotated

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from src.api.dependencies import (
    get_current_user,
    get_identification_service,
    get_product_repository,
    get_session_identity,
)
from src.exceptions import ExtractionError, NotFoundError
from src.models.user import User
from src.schemas.product import IdentificationResponse, IdentifyRequest, ProductResponse
from src.services.identification import IdentificationService
from src.services.identity import Authenticated, Guest, SessionIdentity
from src.services.storage import ProductRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/products", tags=["products"])


@router.post("/identify", response_model=IdentificationResponse)
async def identify_product(
    identity: Annotated[SessionIdentity, Depends(get_session_identity)],
    service: Annotated[IdentificationService, Depends(get_identification_service)],
    request: Annotated[IdentifyRequest | None, Body()] = None,
):
    """Identify a product from an image.

    Authenticated callers get a saved product. Guests, and callers whose save
    fails, get a temporary result with ``temporary=true``.
    """
    image = request.image if request else None
    if not image:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Image is required")

    if not isinstance(identity, Authenticated | Guest):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        result = await service.identify(image, identity)
    except ExtractionError as e:
        logger.error(f"OCR failed: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to process image: {e.message}",
        ) from e

    return result.to_response()


@router.get("", response_model=list[ProductResponse])
def get_products(
    identity: Annotated[SessionIdentity, Depends(get_session_identity)],
    repository: Annotated[ProductRepository, Depends(get_product_repository)],
):
    """Get the caller's products. Empty unless authenticated."""
    if not isinstance(identity, Authenticated):
        return []
    return repository.get_products(identity.user_id)


@router.get("/search", response_model=list[ProductResponse])
def search_products(
    repository: Annotated[ProductRepository, Depends(get_product_repository)],
    q: str | None = Query(default=None, max_length=255),
):
    """Search products by name, description or brand."""
    if not q or not q.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Search query required"
        )
    return repository.search_products(q.strip())


@router.get("/{product_id}", response_model=ProductResponse)
def get_product(
    product_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    repository: Annotated[ProductRepository, Depends(get_product_repository)],
):
    """Get one of the caller's products."""
    product = repository.get_product(product_id, owner_id=current_user.id)
    if not product:
        raise NotFoundError("Product not found")
    return product


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_product(
    product_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    repository: Annotated[ProductRepository, Depends(get_product_repository)],
):
    """Delete one of the caller's products."""
    product = repository.get_product(product_id, owner_id=current_user.id)
    if not product:
        raise NotFoundError("Product not found")
    repository.delete_product(product)

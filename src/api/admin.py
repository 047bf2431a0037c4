"""Admin API endpoints for user and product management."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from src.api.dependencies import get_admin_user, get_product_repository
from src.database import get_db
from src.exceptions import NotFoundError
from src.models.enums import UserRole
from src.models.user import User
from src.schemas.admin import ActiveUser, AdminStats, RoleUpdate
from src.schemas.auth import MessageResponse, UserResponse
from src.schemas.product import ProductResponse
from src.services.storage import ProductRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


def get_user_or_404(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("User not found")
    return user


@router.get("/users", response_model=list[UserResponse])
def list_users(
    admin: Annotated[User, Depends(get_admin_user)],
    db: Annotated[Session, Depends(get_db)],
):
    """Get all users."""
    return db.query(User).order_by(User.id).all()


@router.get("/users/{user_id}", response_model=UserResponse)
def get_user(
    user_id: int,
    admin: Annotated[User, Depends(get_admin_user)],
    db: Annotated[Session, Depends(get_db)],
):
    """Get a user by ID."""
    return get_user_or_404(db, user_id)


@router.put("/users/{user_id}/role", response_model=UserResponse)
def update_user_role(
    user_id: int,
    role_data: RoleUpdate,
    admin: Annotated[User, Depends(get_admin_user)],
    db: Annotated[Session, Depends(get_db)],
):
    """Change a user's role. Admins cannot demote themselves."""
    if user_id == admin.id and role_data.role != UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot demote yourself"
        )

    user = get_user_or_404(db, user_id)
    user.role = role_data.role
    db.commit()
    db.refresh(user)

    logger.info(f"Admin {admin.id} set role of user {user.id} to {user.role.value}")
    return user


@router.post("/users/{user_id}/deactivate", response_model=UserResponse)
def deactivate_user(
    user_id: int,
    admin: Annotated[User, Depends(get_admin_user)],
    db: Annotated[Session, Depends(get_db)],
):
    """Soft delete a user. Their tokens stop working; products are kept."""
    if user_id == admin.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot deactivate your own admin account",
        )

    user = get_user_or_404(db, user_id)
    user.soft_delete()
    db.commit()
    db.refresh(user)
    return user


@router.post("/users/{user_id}/restore", response_model=UserResponse)
def restore_user(
    user_id: int,
    admin: Annotated[User, Depends(get_admin_user)],
    db: Annotated[Session, Depends(get_db)],
):
    """Restore a deactivated user."""
    user = get_user_or_404(db, user_id)
    user.restore()
    db.commit()
    db.refresh(user)
    return user


@router.delete("/users/{user_id}", response_model=MessageResponse)
def delete_user(
    user_id: int,
    admin: Annotated[User, Depends(get_admin_user)],
    db: Annotated[Session, Depends(get_db)],
):
    """Permanently delete a user and their products."""
    if user_id == admin.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot delete your own admin account",
        )

    user = get_user_or_404(db, user_id)
    db.delete(user)
    db.commit()

    logger.info(f"Admin {admin.id} deleted user {user_id}")
    return MessageResponse(message="User deleted successfully")


@router.get("/products", response_model=list[ProductResponse])
def list_products(
    admin: Annotated[User, Depends(get_admin_user)],
    repository: Annotated[ProductRepository, Depends(get_product_repository)],
):
    """Get all products of all users."""
    return repository.get_products()


@router.delete("/products/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_product(
    product_id: int,
    admin: Annotated[User, Depends(get_admin_user)],
    repository: Annotated[ProductRepository, Depends(get_product_repository)],
):
    """Delete any product."""
    product = repository.get_product(product_id)
    if not product:
        raise NotFoundError("Product not found")
    repository.delete_product(product)


@router.get("/stats", response_model=AdminStats)
def get_stats(
    admin: Annotated[User, Depends(get_admin_user)],
    db: Annotated[Session, Depends(get_db)],
    repository: Annotated[ProductRepository, Depends(get_product_repository)],
):
    """Get user and product statistics."""
    total_users = db.query(User).count()
    verified_users = db.query(User).filter(User.is_verified.is_(True)).count()
    total_products = repository.count_products()

    most_active_user = None
    counts = repository.count_products_by_owner()
    if counts:
        # Ties go to the lowest user id
        user_id, product_count = min(counts.items(), key=lambda kv: (-kv[1], kv[0]))
        user = db.query(User).filter(User.id == user_id).first()
        if user:
            most_active_user = ActiveUser(
                **UserResponse.model_validate(user).model_dump(), product_count=product_count
            )

    return AdminStats(
        total_users=total_users,
        verified_users=verified_users,
        total_products=total_products,
        most_active_user=most_active_user,
        average_products_per_user=total_products / total_users if total_users else 0.0,
    )

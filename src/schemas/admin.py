"""Admin schemas."""

from pydantic import BaseModel

from src.models.enums import UserRole
from src.schemas.auth import UserResponse


class RoleUpdate(BaseModel):
    """Change a user's role."""

    role: UserRole


class ActiveUser(UserResponse):
    """User with their product count."""

    product_count: int


class AdminStats(BaseModel):
    """Aggregate user and product statistics."""

    total_users: int
    verified_users: int
    total_products: int
    most_active_user: ActiveUser | None
    average_products_per_user: float

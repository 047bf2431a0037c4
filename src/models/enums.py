"""Enums for model fields."""

from enum import Enum


class UserRole(str, Enum):
    """Account roles."""

    USER = "user"
    ADMIN = "admin"

    def is_admin(self) -> bool:
        """Check if this role grants access to the admin API."""
        return self == UserRole.ADMIN

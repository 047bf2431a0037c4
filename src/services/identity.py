"""Caller identity resolved once per request.

A session is exactly one of ``Anonymous``, ``Guest`` or ``Authenticated``.
Guest tokens never carry a user id, so a guest never becomes authenticated
without a fresh login.
"""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class Anonymous:
    """No usable token."""

    is_authenticated = False
    is_guest = False

    @property
    def current_user_id(self) -> int | None:
        return None


@dataclass(frozen=True)
class Guest:
    """Temporary access granted by the guest-entry action."""

    created_at: datetime

    is_authenticated = False
    is_guest = True

    @property
    def current_user_id(self) -> int | None:
        return None


@dataclass(frozen=True)
class Authenticated:
    """A logged-in user."""

    user_id: int

    is_authenticated = True
    is_guest = False

    @property
    def current_user_id(self) -> int | None:
        return self.user_id


SessionIdentity = Anonymous | Guest | Authenticated

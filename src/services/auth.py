"""Authentication service for JWT, password and OAuth handling."""

import logging
import secrets
from datetime import UTC, datetime, timedelta
from typing import Protocol
from urllib.parse import urlencode

import httpx
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from src.config import Settings, get_settings
from src.models.enums import UserRole
from src.models.user import User

logger = logging.getLogger(__name__)

settings = get_settings()

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

GITHUB_AUTHORIZE_URL = "https://github.com/login/oauth/authorize"
GITHUB_TOKEN_URL = "https://github.com/login/oauth/access_token"  # noqa: S105
GITHUB_USER_URL = "https://api.github.com/user"

OAUTH_STATE_COOKIE = "github_oauth_state"
OAUTH_STATE_EXPIRATION_MINUTES = 10


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hash a password."""
    return pwd_context.hash(password)


def generate_token() -> str:
    """Generate a random token for email verification and password reset."""
    return secrets.token_hex(32)


def create_access_token(user_id: int, username: str) -> str:
    """Create a JWT access token for a user."""
    expire = datetime.now(UTC) + timedelta(minutes=settings.jwt_expiration_minutes)
    to_encode = {
        "sub": str(user_id),
        "username": username,
        "exp": expire,
    }
    encoded_jwt = jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)
    return encoded_jwt


def create_guest_token(created_at: datetime) -> str:
    """Create a JWT marking a guest session. It carries no subject."""
    expire = created_at + timedelta(minutes=settings.guest_expiration_minutes)
    to_encode = {
        "guest": True,
        "created_at": created_at.isoformat(),
        "exp": expire,
    }
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def create_oauth_state_token(state: str) -> str:
    """Sign an OAuth state value for the short-lived state cookie."""
    expire = datetime.now(UTC) + timedelta(minutes=OAUTH_STATE_EXPIRATION_MINUTES)
    to_encode = {"oauth_state": state, "exp": expire}
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_oauth_state(state_token: str | None, state: str | None) -> bool:
    """Check the callback's state against the signed value from the cookie."""
    if not state_token or not state:
        return False
    payload = decode_access_token(state_token)
    if payload is None:
        return False
    expected = payload.get("oauth_state")
    if not isinstance(expected, str):
        return False
    return secrets.compare_digest(expected, state)


def decode_access_token(token: str) -> dict | None:
    """Decode and validate a JWT token."""
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
        return payload
    except JWTError:
        return None


def get_user_by_username(db: Session, username: str) -> User | None:
    """Get a user by username."""
    return db.query(User).filter(User.username == username).first()


def get_user_by_email(db: Session, email: str) -> User | None:
    """Get a user by email."""
    return db.query(User).filter(User.email == email).first()


def create_user(
    db: Session,
    username: str,
    email: str,
    password: str,
    *,
    is_verified: bool = False,
    verification_token: str | None = None,
    role: UserRole = UserRole.USER,
    github_id: str | None = None,
) -> User:
    """Create a new user."""
    hashed_password = get_password_hash(password)
    user = User(
        username=username,
        email=email,
        password_hash=hashed_password,
        is_verified=is_verified,
        verification_token=verification_token,
        role=role,
        github_id=github_id,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


class CredentialVerifier(Protocol):
    """Turns some credential into a User, or None if it is rejected."""

    def verify(self, *args, **kwargs) -> User | None: ...


class PasswordVerifier:
    """Verify a username and password against stored hashes."""

    def __init__(self, db: Session, settings: Settings | None = None) -> None:
        self.db = db
        self.settings = settings or get_settings()

    def verify(self, username: str, password: str) -> User | None:
        user = get_user_by_username(self.db, username)
        if not user or user.is_deleted:
            return None
        if not verify_password(password, user.password_hash):
            return None
        if self.settings.require_verified_email and not user.is_verified:
            return None
        return user


class OAuthVerifier:
    """Verify a GitHub OAuth callback code and map it to a local user."""

    def __init__(self, db: Session, settings: Settings | None = None) -> None:
        self.db = db
        self.settings = settings or get_settings()
        self.timeout = 10.0

    @property
    def is_configured(self) -> bool:
        return self.settings.github_oauth_enabled

    def authorize_url(self, state: str | None = None) -> str:
        """Build the GitHub authorization redirect URL."""
        params = {
            "client_id": self.settings.github_client_id,
            "redirect_uri": f"{self.settings.base_url}/api/auth/github/callback",
            "scope": "user:email",
        }
        if state:
            params["state"] = state
        return f"{GITHUB_AUTHORIZE_URL}?{urlencode(params)}"

    async def fetch_profile(self, code: str) -> dict | None:
        """Exchange the code for an access token and fetch the GitHub profile."""
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            token_response = await client.post(
                GITHUB_TOKEN_URL,
                headers={"Accept": "application/json"},
                data={
                    "client_id": self.settings.github_client_id,
                    "client_secret": self.settings.github_client_secret,
                    "code": code,
                },
            )
            token_response.raise_for_status()
            access_token = token_response.json().get("access_token")
            if not access_token:
                logger.warning("GitHub did not return an access token")
                return None

            profile_response = await client.get(
                GITHUB_USER_URL,
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Accept": "application/vnd.github+json",
                },
            )
            profile_response.raise_for_status()
            return profile_response.json()

    async def verify(self, code: str) -> User | None:
        if not self.is_configured:
            return None

        try:
            profile = await self.fetch_profile(code)
        except httpx.HTTPError as e:
            logger.error(f"HTTP error during GitHub OAuth: {e}")
            return None

        if not profile or "id" not in profile:
            return None

        return self.get_or_create_user(profile)

    def available_username(self, login: str, github_id: str) -> str:
        """Pick a free username for a new GitHub account, starting from its login."""
        for candidate in (login, f"{login}-{github_id}"):
            if get_user_by_username(self.db, candidate) is None:
                return candidate
        return f"{login}-{github_id}-{secrets.token_hex(3)}"

    def get_or_create_user(self, profile: dict) -> User | None:
        """Find the user linked to a GitHub profile, creating one if needed.

        Accounts are matched only by GitHub id. A local account with the same
        username is never linked.
        """
        github_id = str(profile["id"])
        login = profile.get("login") or github_id

        user = self.db.query(User).filter(User.github_id == github_id).first()

        if user is None:
            username = self.available_username(login, github_id)
            email = profile.get("email") or f"{github_id}+{username}@users.noreply.github.com"
            if get_user_by_email(self.db, email):
                logger.warning(f"GitHub user {username} has an email already in use")
                return None
            # Random password: the account can only sign in through GitHub until reset
            user = create_user(
                self.db,
                username,
                email,
                secrets.token_hex(32),
                is_verified=True,
                github_id=github_id,
            )
            logger.info(f"Created user {user.username} (ID: {user.id}) from GitHub")

        if user.is_deleted:
            return None
        return user

"""API endpoint tests for health, authentication, guest sessions and password reset."""

from unittest.mock import AsyncMock, patch
from urllib.parse import parse_qs, urlparse

import pytest

from src.config import get_settings
from src.models.user import User
from src.services.auth import OAUTH_STATE_COOKIE


def test_health_check(client):
    """Test health check endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_register_user(client, db):
    """Test user registration creates an unverified user without logging in."""
    response = client.post(
        "/api/register",
        json={"username": "newuser", "email": "newuser@example.com", "password": "password123"},
    )
    assert response.status_code == 201
    assert "access_token" not in response.json()
    assert "verify" in response.json()["message"]

    user = db.query(User).filter(User.username == "newuser").first()
    assert user.is_verified is False
    assert user.verification_token
    assert user.password_hash != "password123"


def test_register_duplicate_username(client, auth_headers):
    """Test registration with a taken username fails."""
    response = client.post(
        "/api/register",
        json={"username": "testuser", "email": "other@example.com", "password": "password123"},
    )
    assert response.status_code == 400
    assert "Username already exists" in response.json()["detail"]


def test_register_duplicate_email(client, auth_headers):
    """Test registration with a taken email fails."""
    response = client.post(
        "/api/register",
        json={"username": "another", "email": "test@example.com", "password": "password123"},
    )
    assert response.status_code == 400
    assert "Email already exists" in response.json()["detail"]


def test_register_email_failure_still_succeeds(client):
    """Test registration does not fail when the verification email cannot be sent."""
    from src.exceptions import EmailError

    with patch(
        "src.services.email.EmailService.send_verification_email",
        side_effect=EmailError("smtp down"),
    ):
        response = client.post(
            "/api/register",
            json={"username": "mailless", "email": "mailless@example.com", "password": "pass12345"},
        )
    assert response.status_code == 201


def test_verify_email(client, db):
    """Test the verification token is consumed and the user marked verified."""
    client.post(
        "/api/register",
        json={"username": "verifyme", "email": "verifyme@example.com", "password": "password123"},
    )
    user = db.query(User).filter(User.username == "verifyme").first()
    token = user.verification_token

    response = client.get(f"/api/verify-email?token={token}")
    assert response.status_code == 200

    db.refresh(user)
    assert user.is_verified is True
    assert user.verification_token is None

    # Single use
    response = client.get(f"/api/verify-email?token={token}")
    assert response.status_code == 404


def test_verify_email_missing_token(client):
    """Test verification without a token is rejected."""
    assert client.get("/api/verify-email").status_code == 400


def test_login(client, auth_headers):
    """Test user login."""
    response = client.post(
        "/api/login", json={"username": auth_headers.username, "password": "testpass123"}
    )
    assert response.status_code == 200
    data = response.json()
    assert "access_token" in data
    assert data["user"]["username"] == "testuser"
    assert "password_hash" not in data["user"]


def test_login_wrong_password(client, auth_headers):
    """Test login with wrong password."""
    response = client.post(
        "/api/login", json={"username": auth_headers.username, "password": "wrongpass"}
    )
    assert response.status_code == 401


def test_login_unknown_user(client):
    """Test login with an unknown username."""
    response = client.post("/api/login", json={"username": "ghost", "password": "whatever1"})
    assert response.status_code == 401


def test_login_requires_verification_when_enabled(client, auth_headers):
    """Test unverified users are rejected when verification is enforced."""
    settings = get_settings()
    settings.require_verified_email = True
    try:
        response = client.post(
            "/api/login", json={"username": auth_headers.username, "password": "testpass123"}
        )
    finally:
        settings.require_verified_email = False
    assert response.status_code == 401


def test_get_current_user(client, auth_headers):
    """Test getting current user info."""
    response = client.get("/api/user", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["id"] == auth_headers.user_id
    assert response.json()["role"] == "user"


def test_get_current_user_anonymous(client):
    """Test the current user endpoint without a token."""
    assert client.get("/api/user").status_code == 401


def test_guest_session(client, guest_headers):
    """Test the guest marker is returned for guest sessions."""
    response = client.get("/api/user", headers=guest_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["guest"] is True
    assert "created_at" in data
    assert "id" not in data


def test_guest_cannot_use_account_endpoints(client, guest_headers):
    """Test a guest token does not grant authenticated access."""
    assert client.get("/api/profile", headers=guest_headers).status_code == 401


def test_logout(client, auth_headers, guest_headers):
    """Test logout is acknowledged for users, guests and anonymous callers."""
    for headers in (auth_headers, guest_headers, {}):
        response = client.post("/api/logout", headers=headers)
        assert response.status_code == 200


def test_password_reset_flow(client, auth_headers, db):
    """Test requesting and using a single-use reset token."""
    response = client.post("/api/reset-password/request", json={"email": "test@example.com"})
    assert response.status_code == 200

    user = db.query(User).filter(User.id == auth_headers.user_id).first()
    db.refresh(user)
    token = user.reset_token
    assert token

    response = client.post(
        "/api/reset-password/reset", json={"token": token, "password": "brandnew123"}
    )
    assert response.status_code == 200

    db.refresh(user)
    assert user.reset_token is None

    # Token cannot be reused
    response = client.post(
        "/api/reset-password/reset", json={"token": token, "password": "another123"}
    )
    assert response.status_code == 404

    response = client.post("/api/login", json={"username": "testuser", "password": "brandnew123"})
    assert response.status_code == 200


def test_password_reset_unknown_email(client):
    """Test reset requests do not reveal whether an email exists."""
    response = client.post("/api/reset-password/request", json={"email": "nobody@example.com"})
    assert response.status_code == 200
    assert "If your email is registered" in response.json()["message"]


def test_password_reset_email_failure(client, auth_headers):
    """Test a failed reset email is reported."""
    from src.exceptions import EmailError

    with patch(
        "src.services.email.EmailService.send_password_reset_email",
        side_effect=EmailError("smtp down"),
    ):
        response = client.post("/api/reset-password/request", json={"email": "test@example.com"})
    assert response.status_code == 500


def test_github_login_disabled(client):
    """Test GitHub login is unavailable without credentials."""
    assert client.get("/api/auth/github", follow_redirects=False).status_code == 404
    assert client.get("/api/auth/github/callback?code=abc").status_code == 404



@pytest.fixture
def github_enabled():
    """Configure GitHub OAuth credentials for the duration of a test."""
    settings = get_settings()
    settings.github_client_id = "client-id"
    settings.github_client_secret = "client-secret"
    yield settings
    settings.github_client_id = None
    settings.github_client_secret = None


def start_github_login(client) -> str:
    """Begin a GitHub login and return the state sent to GitHub."""
    response = client.get("/api/auth/github", follow_redirects=False)
    assert response.status_code == 307
    assert OAUTH_STATE_COOKIE in response.cookies
    query = parse_qs(urlparse(response.headers["location"]).query)
    assert query["client_id"] == ["client-id"]
    return query["state"][0]


def test_github_callback_creates_user(client, db, github_enabled):
    """Test a GitHub callback creates and logs in a verified user."""
    with patch(
        "src.services.auth.OAuthVerifier.fetch_profile",
        new=AsyncMock(return_value={"id": 42, "login": "octocat", "email": None}),
    ):
        state = start_github_login(client)
        response = client.get(f"/api/auth/github/callback?code=abc&state={state}")
        assert response.status_code == 200
        first_id = response.json()["user"]["id"]

        # Second login maps to the same account
        state = start_github_login(client)
        response = client.get(f"/api/auth/github/callback?code=def&state={state}")
        assert response.json()["user"]["id"] == first_id

    user = db.query(User).filter(User.github_id == "42").first()
    assert user.username == "octocat"
    assert user.is_verified is True


def test_github_callback_rejects_bad_state(client, github_enabled):
    """Test the callback requires the state issued to this browser."""
    fetch_profile = AsyncMock(return_value={"id": 42, "login": "octocat", "email": None})
    with patch("src.services.auth.OAuthVerifier.fetch_profile", new=fetch_profile):
        # No login started, so no state cookie
        response = client.get("/api/auth/github/callback?code=abc&state=forged")
        assert response.status_code == 400

        start_github_login(client)
        response = client.get("/api/auth/github/callback?code=abc")
        assert response.status_code == 400

        response = client.get("/api/auth/github/callback?code=abc&state=forged")
        assert response.status_code == 400

    fetch_profile.assert_not_called()


def test_github_callback_state_is_single_use(client, github_enabled):
    """Test a state cannot be replayed after a completed login."""
    with patch(
        "src.services.auth.OAuthVerifier.fetch_profile",
        new=AsyncMock(return_value={"id": 42, "login": "octocat", "email": None}),
    ):
        state = start_github_login(client)
        assert client.get(f"/api/auth/github/callback?code=abc&state={state}").status_code == 200
        assert client.get(f"/api/auth/github/callback?code=abc&state={state}").status_code == 400


def test_github_callback_rejected(client, github_enabled):
    """Test a failed code exchange is a 401."""
    with patch("src.services.auth.OAuthVerifier.fetch_profile", new=AsyncMock(return_value=None)):
        state = start_github_login(client)
        response = client.get(f"/api/auth/github/callback?code=bad&state={state}")
    assert response.status_code == 401


def test_github_login_does_not_take_over_local_account(client, db, auth_headers, github_enabled):
    """Test a GitHub login named after a local user gets its own account."""
    with patch(
        "src.services.auth.OAuthVerifier.fetch_profile",
        new=AsyncMock(return_value={"id": 999, "login": "testuser", "email": "evil@attacker.io"}),
    ):
        state = start_github_login(client)
        response = client.get(f"/api/auth/github/callback?code=abc&state={state}")

    assert response.status_code == 200
    user = response.json()["user"]
    assert user["id"] != auth_headers.user_id
    assert user["username"] == "testuser-999"
    assert user["email"] == "evil@attacker.io"

    local = db.query(User).filter(User.id == auth_headers.user_id).first()
    db.refresh(local)
    assert local.github_id is None
    assert local.email == "test@example.com"

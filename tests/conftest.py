"""Pytest configuration and fixtures."""

import os

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from src.database import Base, get_db
from src.exceptions import ClassificationError, ExtractionError
from src.main import app
from src.models.enums import UserRole
from src.services.auth import create_user
from src.services.classifier import ClassificationResult, get_product_classifier
from src.services.ocr import get_text_extractor


class AuthHeaders(dict):
    """Dict subclass that also stores user info."""

    def __init__(self, *args, user_id: int | None = None, username: str | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.user_id = user_id
        self.username = username


# Use TEST_DATABASE_URL (e.g. PostgreSQL in Docker) when set, SQLite otherwise
SQLALCHEMY_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite:///./test.db")

connect_args = {"check_same_thread": False} if "sqlite" in SQLALCHEMY_DATABASE_URL else {}
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args=connect_args)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# 1x1 transparent PNG
SAMPLE_IMAGE = (
    "data:image/png;base64,"
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJ"
    "AAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    """Create test database schema once at the start of the test session."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture(scope="function", autouse=True)
def db():
    """Create a fresh database session for each test with cleanup."""
    session = TestingSessionLocal()

    yield session

    # Clean up all data after test
    session.rollback()
    for table in reversed(Base.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()
    session.close()


@pytest.fixture(scope="function")
def client(db):
    """Create a test client with database override."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


class FakeExtractor:
    """Stand-in for the OCR adapter."""

    def __init__(self, text: str = "NVIDIA RTX 4080", error: Exception | None = None):
        self.text = text
        self.error = error
        self.calls = 0

    async def extract_text(self, image: str) -> str:
        self.calls += 1
        if self.error:
            raise self.error
        return self.text


class FakeClassifier:
    """Stand-in for the vision classification adapter."""

    def __init__(
        self,
        result: ClassificationResult | None = None,
        error: Exception | None = None,
    ):
        self.result = result or ClassificationResult(
            name="GeForce RTX 4080",
            description="High-end graphics card",
            brand="NVIDIA",
            category="Graphics Cards",
        )
        self.error = error
        self.calls = 0

    async def classify(self, image: str, text: str) -> ClassificationResult:
        self.calls += 1
        if self.error:
            raise self.error
        return self.result


@pytest.fixture
def extractor():
    return FakeExtractor()


@pytest.fixture
def classifier():
    return FakeClassifier()


@pytest.fixture
def adapters(client, extractor, classifier):
    """Install fake OCR and classification adapters on the app."""
    app.dependency_overrides[get_text_extractor] = lambda: extractor
    app.dependency_overrides[get_product_classifier] = lambda: classifier
    return extractor, classifier


@pytest.fixture
def failing_extractor():
    return FakeExtractor(error=ExtractionError("No text was extracted from the image"))


@pytest.fixture
def failing_classifier():
    return FakeClassifier(error=ClassificationError("Anthropic API not configured"))


@pytest.fixture
def auth_headers(client):
    """Register and log in a user, returning auth headers with user info."""
    response = client.post(
        "/api/register",
        json={"username": "testuser", "email": "test@example.com", "password": "testpass123"},
    )
    assert response.status_code == 201

    response = client.post(
        "/api/login", json={"username": "testuser", "password": "testpass123"}
    )
    assert response.status_code == 200
    data = response.json()

    return AuthHeaders(
        {"Authorization": f"Bearer {data['access_token']}"},
        user_id=data["user"]["id"],
        username=data["user"]["username"],
    )


@pytest.fixture
def admin_headers(client, db):
    """Create an admin user directly and log in."""
    create_user(
        db,
        "admin",
        "admin@example.com",
        "adminpass123",
        is_verified=True,
        role=UserRole.ADMIN,
    )
    response = client.post("/api/login", json={"username": "admin", "password": "adminpass123"})
    assert response.status_code == 200
    data = response.json()

    return AuthHeaders(
        {"Authorization": f"Bearer {data['access_token']}"},
        user_id=data["user"]["id"],
        username="admin",
    )


@pytest.fixture
def guest_headers(client):
    """Start a guest session."""
    response = client.post("/api/guest")
    assert response.status_code == 200
    return AuthHeaders({"Authorization": f"Bearer {response.json()['access_token']}"})


@pytest.fixture
def sample_image():
    return SAMPLE_IMAGE

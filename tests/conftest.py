"""
Test configuration and fixtures for the flat listing API.
Provides database fixtures, a fake image host, test data factories, and common test utilities.
"""

import os

# Must be set before the application modules build their engine and settings
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-that-is-long-enough-for-hs256")

import asyncio
import uuid
from typing import AsyncGenerator, Dict, Iterable, List, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from flatmarket.config import Settings
from flatmarket.database import build_engine, create_tables, get_db
from flatmarket.main import app
from flatmarket.models.user import User, UserRole
from flatmarket.repositories.user import UserRepository
from flatmarket.services.auth import AuthService
from flatmarket.services.flat import FlatService
from flatmarket.services.storage import ObjectStorage
from flatmarket.utils.auth import PasswordHasher, TokenService
from flatmarket.utils.dependencies import get_settings_dep, get_storage
from flatmarket.utils.exceptions import UploadError
from flatmarket.utils.file_utils import ImageUpload


ADMIN_EMAIL = "admin@flatmarket.example.com"
ADMIN_PASSWORD = "break-glass-passphrase"
DEFAULT_PASSWORD = "p1-secret"


class FakeStorage(ObjectStorage):
    """
    In-memory stand-in for the image host.

    Uploads can be made to fail or to finish late, keyed by filename, so tests
    can control both the outcome and the completion order.
    """

    def __init__(
        self,
        fail_on: Iterable[str] = (),
        delays: Optional[Dict[str, float]] = None
    ):
        self.fail_on = set(fail_on)
        self.delays = delays or {}
        self.calls: List[dict] = []
        self.completed: List[str] = []

    async def upload(self, image, folder, transformation) -> str:
        self.calls.append({
            "filename": image.filename,
            "folder": folder,
            "transformation": transformation,
            "size": image.size
        })

        delay = self.delays.get(image.filename)
        if delay:
            await asyncio.sleep(delay)

        if image.filename in self.fail_on:
            raise UploadError(cause=f"simulated failure for {image.filename}")

        self.completed.append(image.filename)
        return f"https://images.test/{folder}/{image.filename}"


def make_image(
    filename: str = "photo.jpg",
    content_type: str = "image/jpeg",
    data: bytes = b"\xff\xd8\xff\xe0fake-jpeg-bytes"
) -> ImageUpload:
    """Build an in-memory image upload."""
    return ImageUpload(filename=filename, content_type=content_type, data=data)


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Settings for the suite: low bcrypt cost and a configured break-glass pair."""
    return Settings(
        environment="testing",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'flatmarket.db'}",
        jwt_secret_key="test-secret-key-that-is-long-enough-for-hs256",
        bcrypt_rounds=4,
        admin_email=ADMIN_EMAIL,
        admin_password=ADMIN_PASSWORD,
        max_image_size=64 * 1024,
        max_listing_images=5,
    )


@pytest.fixture
async def test_engine(test_settings: Settings):
    """A fresh file-backed SQLite database per test."""
    engine = build_engine(test_settings.database_url)
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker:
    """Session factory bound to the test database."""
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def storage() -> FakeStorage:
    """Image host that accepts everything."""
    return FakeStorage()


@pytest.fixture
def hasher(test_settings: Settings) -> PasswordHasher:
    return PasswordHasher(test_settings.bcrypt_rounds)


@pytest.fixture
def token_service(test_settings: Settings) -> TokenService:
    return TokenService(test_settings)


# Service fixtures
@pytest.fixture
def auth_service(db_session: AsyncSession, test_settings: Settings, storage: FakeStorage) -> AuthService:
    """Create an auth service instance."""
    return AuthService(db_session, test_settings, storage)


@pytest.fixture
def flat_service(db_session: AsyncSession, test_settings: Settings, storage: FakeStorage) -> FlatService:
    """Create a flat service instance."""
    return FlatService(db_session, test_settings, storage)


@pytest.fixture
async def async_client(
    session_factory,
    test_settings: Settings,
    storage: FakeStorage
) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client with database, settings and storage overrides."""
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings_dep] = lambda: test_settings
    app.dependency_overrides[get_storage] = lambda: storage

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# Test data factories
class UserFactory:
    """Factory for creating test users."""

    @staticmethod
    def create_user_data(
        email: str = None,
        name: str = "Test User",
        role: UserRole = UserRole.USER
    ) -> dict:
        """Create user column values (without the password hash)."""
        return {
            "name": name,
            "email": email or f"user{uuid.uuid4().hex[:8]}@example.com",
            "phone": "9876543210",
            "address": "12 Test Street",
            "postal_code": "400001",
            "role": role,
        }

    @staticmethod
    async def create_user(
        db_session: AsyncSession,
        hasher: PasswordHasher,
        email: str = None,
        password: str = DEFAULT_PASSWORD,
        name: str = "Test User",
        role: UserRole = UserRole.USER
    ) -> User:
        """Create a test user in the database."""
        user_data = UserFactory.create_user_data(email=email, name=name, role=role)
        user_data["hashed_password"] = hasher.hash(password)
        return await UserRepository(db_session).create_user(user_data)


@pytest.fixture
async def test_user(db_session: AsyncSession, hasher: PasswordHasher) -> User:
    """Create a regular test user."""
    return await UserFactory.create_user(db_session, hasher, email="owner@example.com", name="Flat Owner")


@pytest.fixture
async def other_user(db_session: AsyncSession, hasher: PasswordHasher) -> User:
    """Create a second regular user."""
    return await UserFactory.create_user(db_session, hasher, email="buyer@example.com", name="Flat Buyer")


@pytest.fixture
async def admin_user(db_session: AsyncSession, hasher: PasswordHasher) -> User:
    """Create the admin account whose email matches the break-glass credential."""
    return await UserFactory.create_user(
        db_session,
        hasher,
        email=ADMIN_EMAIL,
        password="stored-admin-password",
        name="Site Admin",
        role=UserRole.ADMIN
    )


def auth_headers(token_service: TokenService, user: User) -> Dict[str, str]:
    """Request headers carrying a session token for the user."""
    return {"auth-token": token_service.issue(user.id, user.role)}

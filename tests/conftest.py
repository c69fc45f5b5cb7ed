"""Test configuration and fixtures.

Every test gets its own in-memory SQLite database:
1. The schema is created per test on a StaticPool engine (one shared connection)
2. Endpoints use the test's session through a dependency override
3. Telegram payloads are signed with the test bot token, so the real
   verification path runs end to end
"""

import hashlib
import hmac
import os
import time
from collections.abc import AsyncGenerator
from datetime import timedelta
from pathlib import Path

from dotenv import load_dotenv

# Load test environment variables before the application reads its settings
test_env_path = Path(__file__).parent.parent / ".env.test"
load_dotenv(test_env_path, override=True)

# Set test environment
os.environ["TESTING"] = "true"

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from tea_api.config.settings import settings  # noqa: E402
from tea_api.database.base import Base  # noqa: E402
from tea_api.database.dependencies import get_db_session  # noqa: E402
from tea_api.features.auth.jwt_utils import create_access_token  # noqa: E402
from tea_api.features.user.models import User  # noqa: E402
from tea_api.main import app  # noqa: E402

# Database Setup - Function Scope (fresh schema per test)


@pytest_asyncio.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine]:
    """Create an in-memory database with the full schema."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session(db_engine: AsyncEngine) -> AsyncGenerator[AsyncSession]:
    """Create a database session per test."""
    session_factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as async_session:
        yield async_session


# FastAPI Client & Dependency Overrides


@pytest_asyncio.fixture(autouse=True)
async def override_get_db_session(session: AsyncSession):
    """Override the database session dependency with the test session."""

    async def _get_test_session():
        yield session

    app.dependency_overrides[get_db_session] = _get_test_session
    yield
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client() -> AsyncGenerator[AsyncClient]:
    """Create an async HTTP test client.

    The base URL is https so the client's cookie jar keeps the Secure refresh cookie.
    """
    async with AsyncClient(transport=ASGITransport(app=app), base_url="https://test") as ac:
        yield ac


# Test User Factories


@pytest_asyncio.fixture
async def make_user(session: AsyncSession):
    """Factory fixture to create test users with custom fields.

    Usage:
        user = await make_user()                      # defaults
        admin = await make_user(is_admin=True)        # admin
        user = await make_user(refresh_token_id=jti)  # with a live session
    """
    counter = 0

    async def _factory(
        telegram_id=None,
        first_name="Test",
        last_name=None,
        username=None,
        is_admin=False,
        **kwargs,
    ) -> User:
        nonlocal counter
        counter += 1

        if telegram_id is None:
            telegram_id = 100_000 + counter
        if username is None:
            username = f"testuser{counter}"

        user = User(
            telegram_id=telegram_id,
            first_name=first_name,
            last_name=last_name,
            username=username,
            is_admin=is_admin,
            **kwargs,
        )

        session.add(user)
        await session.flush()
        await session.refresh(user)
        return user

    yield _factory


@pytest.fixture
def auth_headers():
    """Build an Authorization header carrying a real access token for a user."""

    def _headers(user: User, expires_delta: timedelta = timedelta(minutes=5)) -> dict[str, str]:
        token = create_access_token(user, settings.jwt_secret_key, expires_delta, settings.jwt_algorithm)
        return {"Authorization": f"Bearer {token.signed_value}"}

    return _headers


# Telegram payload signing


def telegram_signature(fields: dict, bot_token: str) -> str:
    """Reference implementation of Telegram's login widget signature."""
    check_string = "\n".join(sorted(f"{key}={value}" for key, value in fields.items() if value not in ("", None)))
    secret_key = hashlib.sha256(bot_token.encode()).digest()
    return hmac.new(secret_key, check_string.encode(), hashlib.sha256).hexdigest()


@pytest.fixture
def signed_login_payload():
    """Factory for login widget payloads signed with the test bot token.

    Usage:
        payload = signed_login_payload()                       # id=42, Ann, now
        payload = signed_login_payload(id=7, last_name="Lee")  # custom fields
    """

    def _factory(bot_token: str | None = None, **overrides) -> dict:
        fields = {"id": 42, "first_name": "Ann", "auth_date": int(time.time())}
        fields.update(overrides)
        fields["hash"] = telegram_signature(fields, bot_token or settings.telegram_bot_token)
        return fields

    return _factory

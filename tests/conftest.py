"""Test fixtures — in-memory SQLite database, frozen clock, fast bcrypt.

Learn: Testing pattern for async SQLAlchemy + FastAPI:

1. Each test gets its own in-memory SQLite engine (aiosqlite + StaticPool,
   so every session shares the one connection that holds the database).
2. The real SQL stores run against it, with no mocks between the service
   and the database.
3. Time comes from a ManualClock the test can advance; bcrypt runs at
   cost 4 so hashing takes milliseconds.
4. The HTTP client overrides get_db / get_clock / get_hasher /
   get_signing_secret so the app under test uses the same pieces.
"""

from datetime import datetime, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from chirpy.auth.clock import ManualClock
from chirpy.auth.dependencies import get_clock, get_hasher, get_signing_secret
from chirpy.auth.password import BcryptHasher
from chirpy.auth.secret import SigningSecret
from chirpy.db.engine import get_db
from chirpy.db.models import Base
from chirpy.db.stores import SqlRefreshTokenStore, SqlUserStore
from chirpy.main import app
from chirpy.services.session_service import SessionService
from chirpy.services.user_service import UserService

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"

START = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

USER_EMAIL = "a@example.com"
USER_PASSWORD = "secret123"


@pytest.fixture()
def clock():
    return ManualClock(START)


@pytest.fixture()
def secret():
    return SigningSecret(b"test-signing-secret-0123456789abcdef")


@pytest.fixture(scope="session")
def hasher():
    return BcryptHasher(rounds=4)


@pytest_asyncio.fixture()
async def db_session():
    """Per-test session on a fresh in-memory database."""
    engine = create_async_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session = AsyncSession(bind=engine, expire_on_commit=False)
    try:
        yield session
    finally:
        await session.close()
        await engine.dispose()


@pytest.fixture()
def user_store(db_session):
    return SqlUserStore(db_session)


@pytest.fixture()
def token_store(db_session):
    return SqlRefreshTokenStore(db_session)


@pytest.fixture()
def session_service(user_store, token_store, hasher, secret, clock):
    return SessionService(
        user_store,
        token_store,
        hasher=hasher,
        secret=secret,
        clock=clock,
    )


@pytest.fixture()
def user_service(user_store, hasher, clock):
    return UserService(user_store, hasher=hasher, clock=clock)


@pytest_asyncio.fixture()
async def user(user_service):
    """A registered user whose password is USER_PASSWORD."""
    return await user_service.register(USER_EMAIL, USER_PASSWORD)


@pytest_asyncio.fixture()
async def client(db_session, clock, hasher, secret):
    """HTTP client with the app's collaborators overridden for testing."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_hasher] = lambda: hasher
    app.dependency_overrides[get_signing_secret] = lambda: secret

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()

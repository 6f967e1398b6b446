"""
Shared test fixtures for the Acquisitions API test suite.

Each test gets its own in-memory aiosqlite database and a fresh abuse
guard, so rate-limit counters never leak between tests.
"""

import os
import sys
from typing import AsyncGenerator

import pytest

# Ensure project root is importable
ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

# Override environment BEFORE importing application modules
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["CORS_ORIGINS"] = '["*"]'
os.environ["SECRET_KEY"] = "test-secret-key-for-the-acquisitions-suite"
os.environ["ADMISSION_FAILURE_MODE"] = "error"
os.environ.pop("FIRST_ADMIN_EMAIL", None)

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from acquisitions.api.deps import get_abuse_guard, get_db, get_password_hasher, get_token_service
from acquisitions.db.base import Base
from acquisitions.main import app
from acquisitions.models.user import User, UserRole
from acquisitions.schemas.token import Identity
from acquisitions.services.guard import LocalAbuseGuard
from acquisitions.services.store import SQLAlchemyUserStore

BROWSER_UA = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)


# ── Database ────────────────────────────────────────────────────────
@pytest.fixture
async def engine():
    test_engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Return a raw database session for direct queries in tests."""
    async with session_factory() as session:
        yield session


# ── App wiring ──────────────────────────────────────────────────────
@pytest.fixture
def abuse_guard() -> LocalAbuseGuard:
    return LocalAbuseGuard()


@pytest.fixture
async def async_client(session_factory, abuse_guard) -> AsyncGenerator[AsyncClient, None]:
    """Return a httpx AsyncClient wired to the app, posing as a browser."""

    async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_abuse_guard] = lambda: abuse_guard

    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        headers={"User-Agent": BROWSER_UA},
    ) as client:
        yield client

    app.dependency_overrides.clear()


# ── Accounts & tokens ───────────────────────────────────────────────
@pytest.fixture
def make_user(session_factory):
    """Factory inserting a user straight into the test database."""
    hasher = get_password_hasher()

    async def _make(
        name: str = "Test User",
        email: str = "test@example.com",
        password: str = "longenough1",
        role: UserRole = UserRole.USER,
    ) -> User:
        async with session_factory() as session:
            return await SQLAlchemyUserStore(session).create(
                name=name,
                email=email,
                password=await hasher.hash(password),
                role=role.value,
            )

    return _make


@pytest.fixture
def token_for():
    """Build a valid session token for any identity, persisted or not."""
    tokens = get_token_service()

    def _token(user_id: int, role: UserRole = UserRole.USER, email: str | None = None) -> str:
        return tokens.issue(
            Identity(id=user_id, email=email or f"user{user_id}@example.com", role=role)
        )

    return _token


# ── In-memory doubles for service unit tests ────────────────────────
class InMemoryUserStore:
    def __init__(self) -> None:
        self.rows: dict[int, User] = {}
        self.writes = 0
        self.fail_with: Exception | None = None
        self._next_id = 1

    def _check(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    async def get_by_email(self, email: str) -> User | None:
        self._check()
        return next((u for u in self.rows.values() if u.email == email), None)

    async def get_by_id(self, user_id: int) -> User | None:
        self._check()
        return self.rows.get(user_id)

    async def list_all(self) -> list[User]:
        self._check()
        return [self.rows[k] for k in sorted(self.rows)]

    async def create(self, *, name: str, email: str, password: str, role: str) -> User:
        self._check()
        user = User(id=self._next_id, name=name, email=email, password=password, role=role)
        self.rows[user.id] = user
        self._next_id += 1
        self.writes += 1
        return user

    async def update(self, user_id: int, changes: dict) -> User | None:
        self._check()
        user = self.rows.get(user_id)
        if user is None:
            return None
        for field, value in changes.items():
            setattr(user, field, value)
        self.writes += 1
        return user

    async def delete(self, user_id: int) -> bool:
        self._check()
        self.writes += 1
        return self.rows.pop(user_id, None) is not None


class FakeHasher:
    def __init__(self) -> None:
        self.dummy_calls = 0
        self.fail_with: Exception | None = None

    async def hash(self, plain: str) -> str:
        if self.fail_with is not None:
            raise self.fail_with
        return f"hashed:{plain}"

    async def verify(self, plain: str, hashed: str) -> bool:
        if self.fail_with is not None:
            raise self.fail_with
        return hashed == f"hashed:{plain}"

    async def dummy_verify(self) -> None:
        self.dummy_calls += 1


@pytest.fixture
def memory_store() -> InMemoryUserStore:
    return InMemoryUserStore()


@pytest.fixture
def fake_hasher() -> FakeHasher:
    return FakeHasher()

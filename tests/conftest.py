"""Shared test fixtures for pytest"""
import os
from datetime import datetime, timedelta, timezone

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import models  # noqa: F401  (registers tables)
from config import settings
from core.enums import UserRole
from core.identity import Actor
from core.security import create_access_token, get_password_hash
from database import Base, get_db, session_dependency
from main import app
from repositories import ApplicationRepository, UserRepository
from services.application_service import ApplicationService

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
TEST_PASSWORD = "correct-horse-battery"

VALID_FIELDS = {
    "ownerName": "Juan",
    "businessName": "Juan's Bakery",
    "businessType": "Sole Proprietorship",
    "address": "123 Main St",
}


class FakeClock:
    """Deterministic clock: every call is one second after the previous one."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


@pytest.fixture(autouse=True)
def fast_retries(monkeypatch):
    monkeypatch.setattr(settings, "storage_retry_base_delay", 0.0)


@pytest.fixture
async def test_engine():
    """In-memory database, fresh per test"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
        autocommit=False,
    )


@pytest.fixture
async def test_db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def repo(test_db):
    return ApplicationRepository(test_db)


@pytest.fixture
def service(test_db, clock):
    return ApplicationService(ApplicationRepository(test_db), UserRepository(test_db), clock=clock)


async def _make_user(session_factory, email: str, role: UserRole):
    async with session_factory() as session:
        user = await UserRepository(session).create(email, get_password_hash(TEST_PASSWORD), role=role)
        await session.commit()
    return user


@pytest.fixture
async def citizen(session_factory):
    return await _make_user(session_factory, "juan@example.com", UserRole.USER)


@pytest.fixture
async def other_citizen(session_factory):
    return await _make_user(session_factory, "maria@example.com", UserRole.USER)


@pytest.fixture
async def admin_user(session_factory):
    return await _make_user(session_factory, "clerk@cityhall.gov", UserRole.ADMIN)


@pytest.fixture
def owner(citizen):
    return Actor(id=citizen.id, role=UserRole.USER)


@pytest.fixture
def other_owner(other_citizen):
    return Actor(id=other_citizen.id, role=UserRole.USER)


@pytest.fixture
def admin(admin_user):
    return Actor(id=admin_user.id, role=UserRole.ADMIN)


def auth_headers(actor: Actor) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(actor.id, actor.role)}"}


@pytest.fixture
async def client(session_factory):
    """HTTP client for API testing"""

    app.dependency_overrides[get_db] = session_dependency(session_factory)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()

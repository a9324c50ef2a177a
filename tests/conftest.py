"""
Shared test fixtures for the door access & attendance test suite.

Every test gets its own in-memory aiosqlite database; the request
session, the background-handler session factory and the calendar
policy are all swapped in through ``app.dependency_overrides``.
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
# CORS fix (JSON format)
os.environ["CORS_ORIGINS"] = '["*"]'

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (AsyncSession, async_sessionmaker,
                                    create_async_engine)
from sqlalchemy.pool import StaticPool

from doorlock.api.v1.deps import (get_calendar_policy, get_db,
                                  get_session_factory)
from doorlock.api.v1.endpoints.auth import limiter
from doorlock.core.config import settings
from doorlock.core.security import create_access_token, get_password_hash
from doorlock.db.base import Base
from doorlock.main import app
from doorlock.models.user import User
from doorlock.services.calendar import CalendarPolicy


@pytest.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Fresh in-memory database per test, shared by every session via StaticPool."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def policy() -> CalendarPolicy:
    """Office 09:00-17:00 UTC, Monday-Friday, checkout window 16:50-17:05."""
    return CalendarPolicy.from_settings(settings)


@pytest.fixture(autouse=True)
def _wire_app(session_factory, policy):
    async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_calendar_policy] = lambda: policy
    limiter.reset()

    yield

    app.dependency_overrides.clear()


@pytest.fixture
async def async_client() -> AsyncGenerator[AsyncClient, None]:
    """Return a httpx AsyncClient wired to the app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Return a raw database session for direct queries in tests."""
    async with session_factory() as session:
        yield session


# ── Users & auth ────────────────────────────────────────────────────
async def make_user(
    db: AsyncSession,
    user_id: str,
    *,
    email: str | None = None,
    role: str = "employee",
    status: str = "active",
    department: str | None = "Engineering",
    methods: tuple[str, ...] = ("rfid", "fingerprint", "keypad"),
    password: str | None = None,
) -> User:
    user = User(
        user_id=user_id,
        email=email or f"{user_id.lower()}@example.com",
        hashed_password=get_password_hash(password) if password else None,
        first_name="Test",
        last_name=user_id,
        role=role,
        status=status,
        department=department,
        access_level=1,
        allowed_access_methods=list(methods),
    )
    db.add(user)
    await db.commit()
    return user


@pytest.fixture
async def admin_user(db_session: AsyncSession) -> User:
    return await make_user(db_session, "BTL-25-01-01", role="admin", department="Operations")


@pytest.fixture
async def employee_user(db_session: AsyncSession) -> User:
    return await make_user(db_session, "BTL-25-01-02")


@pytest.fixture
def admin_headers(admin_user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(admin_user.user_id)}"}


@pytest.fixture
def employee_headers(employee_user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(employee_user.user_id)}"}


@pytest.fixture
def user_factory(db_session: AsyncSession):
    async def _make(user_id: str, **kwargs) -> User:
        return await make_user(db_session, user_id, **kwargs)

    return _make

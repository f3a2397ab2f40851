"""
Shared test fixtures for the Salon Staff API test suite.

Async throughout (aiosqlite + AsyncSession); one in-memory database
shared through a StaticPool and recreated for every test.
"""

import os
import sys
from collections.abc import AsyncGenerator
from datetime import datetime, timezone

import pytest

# Ensure project root is importable
ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

# Override environment BEFORE importing application modules
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["CORS_ORIGINS"] = '["*"]'
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["TIMEZONE"] = "Asia/Kolkata"
os.environ["SECRET_KEY"] = "test-secret-key-for-the-suite-only"

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from salon_api.api.v1.deps import get_db, get_notifier
from salon_api.core.security import create_access_token, get_password_hash
from salon_api.db.base import Base
from salon_api.main import app
from salon_api.models.employee import Employee
from salon_api.models.enums import Role
from salon_api.models.user import User
from salon_api.services.notifier import Notifier

test_engine = create_async_engine(
    "sqlite+aiosqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class RecordingPublisher:
    """EventPublisher that keeps every event instead of sending it."""

    def __init__(self) -> None:
        self.events: list[tuple[str, dict, tuple[str, ...]]] = []

    def publish(self, event, payload, rooms) -> None:
        self.events.append((event, payload, tuple(rooms)))

    def named(self, event: str) -> list[dict]:
        return [payload for name, payload, _ in self.events if name == event]


@pytest.fixture(autouse=True)
async def setup_db():
    """Create all tables before usage and drop after."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestingSessionLocal() as session:
        yield session


app.dependency_overrides[get_db] = _override_get_db


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def notifier(publisher: RecordingPublisher) -> Notifier:
    return Notifier(publisher)


@pytest.fixture
async def async_client(notifier: Notifier) -> AsyncGenerator[AsyncClient, None]:
    """Return a httpx AsyncClient wired to the app, with events recorded."""
    app.dependency_overrides[get_notifier] = lambda: notifier
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.pop(get_notifier, None)


@pytest.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Return a raw database session for direct queries in tests."""
    async with TestingSessionLocal() as session:
        yield session


# ── Users & tokens ──────────────────────────────────────────────────
async def make_user(session: AsyncSession, email: str, role: Role, password: str = "secret123") -> User:
    user = User(
        email=email,
        hashed_password=get_password_hash(password),
        name=email.split("@")[0].title(),
        role=role.value,
        is_active=True,
    )
    session.add(user)
    await session.commit()
    return user


def auth_header(user: User) -> dict[str, str]:
    token = create_access_token(user.id, role=user.role, email=user.email)
    return {"Authorization": f"Bearer {token}"}


async def make_employee(session: AsyncSession, **overrides) -> Employee:
    fields = {
        "name": "Priya Sharma",
        "email": "priya@salon.test",
        "phone": "9876543210",
        "position": "Stylist",
        "department": "Hair",
        "salary": 0,
        "join_date": datetime(2024, 1, 1, tzinfo=timezone.utc),
    }
    fields.update(overrides)
    employee = Employee(**fields)
    employee.salary_history = []
    employee.attendance_history = []
    session.add(employee)
    await session.commit()
    return employee


@pytest.fixture
async def file_sessions(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Session factory over a file-backed database.

    Each session gets its own connection, so concurrent writers contend
    for real instead of sharing the in-memory StaticPool connection.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'salon.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
async def super_admin(db_session: AsyncSession) -> User:
    return await make_user(db_session, "owner@salon.test", Role.SUPER_ADMIN)


@pytest.fixture
async def admin(db_session: AsyncSession) -> User:
    return await make_user(db_session, "manager@salon.test", Role.ADMIN)


@pytest.fixture
async def employee_user(db_session: AsyncSession) -> User:
    return await make_user(db_session, "priya@salon.test", Role.EMPLOYEE)


@pytest.fixture
def super_admin_headers(super_admin: User) -> dict[str, str]:
    return auth_header(super_admin)


@pytest.fixture
def admin_headers(admin: User) -> dict[str, str]:
    return auth_header(admin)


@pytest.fixture
def employee_headers(employee_user: User) -> dict[str, str]:
    return auth_header(employee_user)


@pytest.fixture
async def employee(db_session: AsyncSession) -> Employee:
    return await make_employee(db_session)


@pytest.fixture
def employee_factory(db_session: AsyncSession):
    """Create extra employees: ``await employee_factory(email=..., salary=...)``."""

    async def _make(**overrides) -> Employee:
        return await make_employee(db_session, **overrides)

    return _make


@pytest.fixture
def user_factory(db_session: AsyncSession):
    async def _make(email: str, role: Role = Role.EMPLOYEE) -> User:
        return await make_user(db_session, email, role)

    return _make

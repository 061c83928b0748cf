"""Pytest configuration and fixtures."""

from collections.abc import AsyncGenerator, Callable
from typing import Any
from unittest.mock import AsyncMock, patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from securemind.api.app import create_application
from securemind.api.dependencies import get_optional_identity
from securemind.auth.sessions import IdentityToken
from securemind.db.models import Base, Employee, IdentityAccount, UserProfile
from securemind.db.session import get_db, get_db_read, get_read_session_factory

# Each test gets its own on-disk SQLite database. A file (not :memory:) lets
# the per-group role queries open their own connections concurrently.


@pytest.fixture
async def async_engine(tmp_path):
    """Create async engine for testing."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'securemind.db'}",
        poolclass=NullPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(async_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession]:
    """Create database session for testing."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def read_factory(session_factory) -> async_sessionmaker[AsyncSession]:
    """Stands in for the read-replica session factory."""
    return session_factory


@pytest.fixture(autouse=True)
def fast_password_hashing():
    """Production iteration counts make every account creation slow."""
    with patch("securemind.auth.passwords.PBKDF2_ITERATIONS", 1_000):
        yield


@pytest.fixture(autouse=True)
def revoke_sessions_mock():
    """Session revocation talks to Redis; record the calls instead."""
    with patch(
        "securemind.auth.identity.revoke_all_user_sessions",
        new_callable=AsyncMock,
        return_value=1,
    ) as mock:
        yield mock


@pytest.fixture
def admin_identity() -> IdentityToken:
    return IdentityToken(
        uid="admin-uid",
        email="admin@example.com",
        session_id="admin-session",
        claims={"role": "admin"},
    )


@pytest.fixture
def user_identity() -> IdentityToken:
    return IdentityToken(
        uid="user-uid",
        email="user@example.com",
        session_id="user-session",
        claims={"role": "user"},
    )


@pytest.fixture
def caller() -> dict[str, IdentityToken | None]:
    """The identity API requests are made as. Tests set caller["identity"]."""
    return {"identity": None}


@pytest.fixture
def app(
    db_session: AsyncSession,
    read_factory: async_sessionmaker[AsyncSession],
    caller: dict[str, IdentityToken | None],
) -> FastAPI:
    """Create FastAPI application for testing."""
    application = create_application()

    async def override_get_db() -> AsyncGenerator[AsyncSession]:
        yield db_session

    async def override_get_optional_identity() -> IdentityToken | None:
        return caller["identity"]

    application.dependency_overrides[get_db] = override_get_db
    application.dependency_overrides[get_db_read] = override_get_db
    application.dependency_overrides[get_read_session_factory] = lambda: read_factory
    application.dependency_overrides[get_optional_identity] = override_get_optional_identity

    return application


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    """Create sync test client."""
    return TestClient(app)


@pytest.fixture
async def async_client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    """Create async test client."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client


@pytest.fixture
def make_account(db_session: AsyncSession) -> Callable[..., Any]:
    """Insert an identity account (and optionally a profile) directly."""

    async def _make(
        uid: str,
        *,
        email: str | None = None,
        role: str | None = None,
        with_profile: bool = True,
    ) -> IdentityAccount:
        account = IdentityAccount(
            uid=uid,
            email=email or f"{uid.lower()}@example.com",
            custom_claims={"role": role} if role else {},
        )
        db_session.add(account)
        if with_profile:
            db_session.add(UserProfile(uid=uid, email=account.email, role=role or "user"))
        await db_session.commit()
        return account

    return _make


@pytest.fixture
def make_employee(db_session: AsyncSession) -> Callable[..., Any]:
    async def _make(employee_id: str, role: str | None, **fields: Any) -> Employee:
        employee = Employee(employee_id=employee_id, role=role, **fields)
        db_session.add(employee)
        await db_session.commit()
        return employee

    return _make

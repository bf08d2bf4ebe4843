"""
Test configuration and shared fixtures.
Uses an in-memory SQLite database, created fresh for every test.
"""
from __future__ import annotations

import os
import tempfile

os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("SWEEP_SCHEDULER_ENABLED", "false")
os.environ.setdefault("ADMIN_INVITE_TOKEN", "test-admin-invite")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="taskboard-uploads-"))

from collections.abc import AsyncGenerator  # noqa: E402

import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import event  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from taskboard.core.security import create_access_token, hash_password  # noqa: E402
from taskboard.crud.user import crud_user  # noqa: E402
from taskboard.db.base import Base  # noqa: E402
from taskboard.db.session import get_db  # noqa: E402
from taskboard.main import app  # noqa: E402
from taskboard.models.user import User  # noqa: E402
from taskboard.services.notification_service import notification_service  # noqa: E402

# ── Test database ─────────────────────────────────────────────────────────────
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TEST_PASSWORD = "TestPass1"


def _enable_sqlite_savepoints(engine: AsyncEngine) -> None:
    """Let SQLAlchemy own BEGIN so SAVEPOINTs work, and enforce foreign keys."""

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):  # type: ignore[no-untyped-def]
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):  # type: ignore[no-untyped-def]
        conn.exec_driver_sql("BEGIN")


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    _enable_sqlite_savepoints(test_engine)
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        try:
            yield session
            await session.rollback()
        finally:
            await session.close()


@pytest_asyncio.fixture
async def client(db: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client with the test session injected."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db
        await notification_service.publish_pending(db)

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


# ── Helper fixtures ───────────────────────────────────────────────────────────

async def _create_user(
    db: AsyncSession,
    *,
    name: str,
    email: str,
    role: str = "member",
) -> User:
    return await crud_user.create_user(
        db,
        name=name,
        email=email,
        hashed_password=hash_password(TEST_PASSWORD),
        role=role,
    )


def bearer(user: User) -> dict[str, str]:
    token = create_access_token(str(user.id), user.role)
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def make_user(db: AsyncSession):  # type: ignore[no-untyped-def]
    """Factory for extra accounts: ``await make_user(name=..., email=..., role=...)``."""

    async def factory(*, name: str, email: str, role: str = "member") -> User:
        return await _create_user(db, name=name, email=email, role=role)

    return factory


@pytest_asyncio.fixture
async def headers_for():  # type: ignore[no-untyped-def]
    return bearer


@pytest_asyncio.fixture
async def admin(db: AsyncSession) -> User:
    return await _create_user(db, name="Admin User", email="admin@example.com", role="admin")


@pytest_asyncio.fixture
async def second_admin(db: AsyncSession) -> User:
    return await _create_user(db, name="Other Admin", email="admin2@example.com", role="admin")


@pytest_asyncio.fixture
async def member(db: AsyncSession) -> User:
    return await _create_user(db, name="Member One", email="member@example.com")


@pytest_asyncio.fixture
async def other_member(db: AsyncSession) -> User:
    return await _create_user(db, name="Member Two", email="member2@example.com")


@pytest_asyncio.fixture
async def admin_headers(admin: User) -> dict[str, str]:
    return bearer(admin)


@pytest_asyncio.fixture
async def member_headers(member: User) -> dict[str, str]:
    return bearer(member)

"""
Shared test fixtures for the EMS reservation test suite.

Every test gets a fresh in-memory SQLite database (aiosqlite + StaticPool)
with the root master account already seeded.
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
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["SECRET_KEY"] = "test-secret-key"

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from ems.api.v1.deps import get_db
from ems.core.config import settings
from ems.db.base import Base
from ems.db.session import enable_sqlite_foreign_keys
from ems.main import app
from ems.services.account_store import AccountStore
from tests.helpers import login

MASTER_PASSWORD = settings.ROOT_MASTER_PASSWORD


@pytest.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker, None]:
    """Fresh database per test, tables created, root master seeded."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        await AccountStore(session).ensure_root_master(
            settings.ROOT_MASTER_ID, settings.ROOT_MASTER_USERNAME, MASTER_PASSWORD
        )

    async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    yield factory
    app.dependency_overrides.pop(get_db, None)
    await engine.dispose()


@pytest.fixture
async def file_session_factory(session_factory, tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    """Like ``session_factory`` but on a SQLite file, so concurrent requests get their own connections."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ems.db'}")
    enable_sqlite_foreign_keys(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        await AccountStore(session).ensure_root_master(
            settings.ROOT_MASTER_ID, settings.ROOT_MASTER_USERNAME, MASTER_PASSWORD
        )

    async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    yield factory
    await engine.dispose()


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Return a raw database session for direct queries in tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def async_client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Return a httpx AsyncClient wired to the app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
async def master_headers(async_client: AsyncClient) -> dict:
    return await login(async_client, settings.ROOT_MASTER_USERNAME, MASTER_PASSWORD)

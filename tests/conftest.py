"""
Global pytest fixtures for the SCIM bridge test suite.

Provides:
- Async database session over a temporary SQLite file
- httpx AsyncClient bound to the real app with get_db overridden
- Tenant, API key and operator session fixtures
"""
import os
from typing import AsyncGenerator
from uuid import uuid4

import pytest
import pytest_asyncio

# Set test environment BEFORE any app imports
os.environ["TESTING"] = "true"
os.environ["ENVIRONMENT"] = "development"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SESSION_JWT_SECRET"] = "test-session-secret-for-testing-at-least-32-bytes"
os.environ["API_URL"] = "https://scim.test"


# ============================================================================
# Async Database Fixtures
# ============================================================================

@pytest_asyncio.fixture
async def async_engine():
    """Create async SQLite engine for testing using a temporary file."""
    from sqlalchemy.ext.asyncio import create_async_engine

    db_file = f"test_{uuid4().hex}.sqlite"
    db_url = f"sqlite+aiosqlite:///{db_file}"

    engine = create_async_engine(db_url, echo=False)
    yield engine
    await engine.dispose()

    # Cleanup
    if os.path.exists(db_file):
        os.remove(db_file)


@pytest_asyncio.fixture
async def db_session(async_engine) -> AsyncGenerator:
    """Create database tables and provide async session."""
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
    import app.models  # noqa: F401
    from app.shared.db.base import Base

    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_maker = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with session_maker() as session:
        try:
            yield session
        finally:
            await session.rollback()
            await session.close()


@pytest_asyncio.fixture
async def db(db_session):
    """Alias for db_session to match API tests."""
    return db_session


# ============================================================================
# FastAPI Test Client Fixtures
# ============================================================================

@pytest.fixture
def app():
    """Use the real app for API tests."""
    from app.main import app as scim_app

    return scim_app


@pytest_asyncio.fixture
async def async_client(app, db) -> AsyncGenerator:
    """Async test client for FastAPI. Overrides get_db to share test session."""
    from httpx import ASGITransport, AsyncClient
    from app.shared.db.session import get_db

    old_override = app.dependency_overrides.get(get_db)
    app.dependency_overrides[get_db] = lambda: db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    if old_override:
        app.dependency_overrides[get_db] = old_override
    else:
        app.dependency_overrides.pop(get_db, None)


@pytest_asyncio.fixture
async def ac(async_client):
    """Alias for async_client."""
    return async_client


# ============================================================================
# Tenancy and Authentication Fixtures
# ============================================================================

@pytest.fixture
def tenant_id() -> str:
    """A fresh operator/tenant identifier."""
    return f"tenant-{uuid4().hex[:12]}"


@pytest_asyncio.fixture
async def api_key(db, tenant_id) -> str:
    """Raw provisioning API key for `tenant_id`."""
    from app.modules.provisioning.domain.api_keys import ApiKeyService

    raw_key, _key_id = await ApiKeyService(db).generate_key("Okta", tenant_id)
    return raw_key


@pytest.fixture
def scim_headers(api_key) -> dict[str, str]:
    return {"Authorization": f"Bearer {api_key}"}


@pytest.fixture
def session_token(tenant_id) -> str:
    from app.shared.core.auth import create_session_token

    return create_session_token({"sub": tenant_id, "email": "operator@example.com"})


@pytest.fixture
def session_headers(session_token) -> dict[str, str]:
    """Cookie header carrying the operator session for `tenant_id`."""
    from app.shared.core.config import get_settings

    return {"Cookie": f"{get_settings().SESSION_COOKIE_NAME}={session_token}"}


@pytest.fixture
def scim_base(tenant_id) -> str:
    return f"/api/{tenant_id}/scim/v2"

"""
Pytest fixtures for identity service tests.

The environment is set before anything under src is imported so cached
settings, the hasher and the token service pick up test values.
"""

import os
import tempfile

_tmp = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
_tmp.close()
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_tmp.name}"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["SECRET_KEY"] = "test-secret-key-for-testing-only-0123456789"
os.environ.pop("BOOTSTRAP_ADMIN_PASSWORD", None)

from src.config import get_settings
get_settings.cache_clear()

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from src.kernel.models.base import Base
from src.kernel.models.organization import Organization
from src.kernel.models.user import User
from src.kernel.identity.identity_service import IdentityService
from src.kernel.identity.jwt import TokenService
from src.kernel.identity.principal import Principal
from src.kernel.organizations.organization_service import OrganizationService


@pytest_asyncio.fixture(scope="function")
async def db_engine(tmp_path):
    """Create a test database engine on a fresh SQLite file."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'identity.db'}",
        echo=False,
        poolclass=NullPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture(scope="function")
def session_maker(db_engine) -> async_sessionmaker:
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def token_service() -> TokenService:
    return TokenService(
        secret_key="test-secret-key-for-testing-only-0123456789",
        algorithm="HS256",
        access_token_expire_minutes=30,
    )


@pytest_asyncio.fixture
async def super_admin(db_session: AsyncSession) -> User:
    """Bootstrap the system organization and return its first super admin."""
    admin = await IdentityService(db_session).bootstrap()
    assert admin is not None
    return admin


@pytest.fixture
def admin_principal(super_admin: User) -> Principal:
    return Principal.from_user(super_admin)


@pytest_asyncio.fixture
async def acme(db_session: AsyncSession, admin_principal: Principal) -> Organization:
    """A tenant organization."""
    return await OrganizationService(db_session).create(
        admin_principal, code="acme", description="Acme Corp"
    )


@pytest_asyncio.fixture
async def globex(db_session: AsyncSession, admin_principal: Principal) -> Organization:
    """A second tenant organization."""
    return await OrganizationService(db_session).create(
        admin_principal, code="globex", description="Globex"
    )

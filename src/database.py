"""
Database connection and session management.
Uses SQLAlchemy 2.0 async pattern.
"""

from typing import Optional

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from src.config import get_settings
from src.logging_config import get_logger

settings = get_settings()
logger = get_logger(__name__)

# Determine engine options based on database type
is_sqlite = settings.database_url.startswith("sqlite")

if is_sqlite:
    # SQLite with NullPool: every session gets its own connection, avoiding
    # "cannot commit transaction - SQL statements in progress" from StaticPool.
    engine = create_async_engine(
        settings.database_url,
        echo=settings.debug,
        connect_args={"check_same_thread": False},
        poolclass=NullPool,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        """Enable WAL mode + foreign keys on every new SQLite connection."""
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA busy_timeout=5000")
        cursor.close()
else:
    # PostgreSQL settings with connection pooling
    engine = create_async_engine(
        settings.database_url,
        echo=settings.debug,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
    )

# Session factory
async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def bootstrap_identity(
    session_maker: Optional[async_sessionmaker] = None,
) -> None:
    """
    Create the system organization and first super admin if missing.

    Runs in a single transaction: either both rows exist afterwards or neither.
    """
    from src.kernel.identity.identity_service import IdentityService

    session_maker = session_maker or async_session_maker
    async with session_maker() as session:
        async with session.begin():
            admin = await IdentityService(session).bootstrap()
    if admin is None:
        logger.info("Super admin present; bootstrap skipped")


async def init_db() -> None:
    """Initialize database tables, then bootstrap the identity core."""
    # Import Base from kernel models to ensure all models are registered
    from src.kernel.models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    await bootstrap_identity()


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()

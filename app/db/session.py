# app/db/session.py
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.core.config import get_settings
from app.db.base import Base

# Import ORM models so that Base.metadata is aware of them
from app.models import actor_storage  # noqa: F401

settings = get_settings()

IS_TEST = settings.APP_ENV == "test"

# ---------------------------------------------------------------------------
# Main application engine + session factory used by the durable actor store
# ---------------------------------------------------------------------------
engine = create_async_engine(
    settings.DB_URL,
    echo=False,
    future=True,
    # Tests drive the engine from several event loops (TestClient portal,
    # pytest-asyncio, fixtures), so connections must never be reused.
    poolclass=NullPool if IS_TEST else None,
)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    autoflush=False,
    expire_on_commit=False,
    class_=AsyncSession,
)


# ---------------------------------------------------------------------------
# PRODUCTION / DEV: DB init for app startup
# ---------------------------------------------------------------------------
async def init_db_for_startup() -> None:
    """
    Initialize DB schema for application startup.

    Safe to call from FastAPI startup in every environment; existing tables
    and rows are left untouched.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# ---------------------------------------------------------------------------
# TESTS ONLY: reset schema
# ---------------------------------------------------------------------------
async def init_db() -> None:
    """
    TEST-ONLY: reset the database schema.

    Drops all tables and recreates them using the current models.
    Do NOT call this from production code. Only from tests/fixtures.
    """
    async with engine.begin() as conn:
        # Drop everything to guarantee a clean slate per test
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

"""
PURPOSE: Async engine, session factory and schema bootstrap for the securities store.

CALLED BY:
    - api/routes_webhook.py (get_db dependency)
    - main.py (init_schema on startup, dispose on shutdown)
"""

import asyncio
from pathlib import Path
from typing import Any, Dict

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from momentum_sync.config.settings import settings
from momentum_sync.db.base import Base
from momentum_sync.utils.logger import get_logger

logger = get_logger(__name__)


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    """
    PURPOSE: Create an async engine with pool options suited to the backend.

    SQLite files get the dialect's default pool; server databases get a
    bounded pool with pre-ping.

    Args:
        url: SQLAlchemy async URL (sqlite+aiosqlite:// or postgresql+asyncpg://).
        echo: Log SQL statements.

    Returns:
        AsyncEngine: Configured engine (no connection is opened yet).
    """
    options: Dict[str, Any] = {"echo": echo}
    if not url.startswith("sqlite"):
        options.update(pool_pre_ping=True, pool_size=20, max_overflow=0)
    return create_async_engine(url, **options)


# Create async engine
engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)

# Create async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db():
    """
    Async generator that yields database sessions for FastAPI Depends.

    Usage in routes:
        async def list_securities(db: AsyncSession = Depends(get_db)):
            ...
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


def _run_alembic_upgrade(ini_path: str) -> None:
    from alembic import command
    from alembic.config import Config

    command.upgrade(Config(ini_path), "head")


async def create_all(target: AsyncEngine) -> None:
    """
    PURPOSE: Create every table known to the ORM metadata on target.

    CALLED BY: init_schema() fallback, test fixtures.
    """
    import momentum_sync.models  # noqa: F401  registers tables on Base.metadata

    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def init_schema() -> None:
    """
    PURPOSE: Bring the securities schema up to date at startup.

    Runs `alembic upgrade head` in a worker thread (Alembic's env.py drives
    its own event loop). If migrations cannot run, for example because the
    ini file is not shipped with the deployment, falls back to create_all so
    a fresh database is still usable.
    """
    if settings.DATABASE_URL.startswith("sqlite"):
        db_path = settings.DATABASE_URL.split(":///", 1)[-1]
        if db_path and db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    if settings.AUTO_MIGRATE:
        try:
            await asyncio.to_thread(_run_alembic_upgrade, settings.ALEMBIC_INI)
            logger.info("alembic_upgrade_complete", ini=settings.ALEMBIC_INI)
            return
        except Exception as e:
            logger.warning(
                "alembic_upgrade_skipped",
                ini=settings.ALEMBIC_INI,
                error=str(e),
                exception_type=type(e).__name__,
            )

    await create_all(engine)
    logger.info("schema_created_from_metadata")

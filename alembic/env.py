"""
PURPOSE: Alembic migration environment configuration.

Configures Alembic to work with async SQLAlchemy (aiosqlite or asyncpg).
Automatically detects all models from momentum_sync.models for migration generation.
"""

import asyncio
from logging.config import fileConfig

from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from alembic import context

# Import Base and all models so Alembic detects them
from momentum_sync.db.base import Base
from momentum_sync.models import SecurityRecord  # noqa: F401
from momentum_sync.config.settings import settings

# Alembic config object for logging
config = context.config

# Interpret the config file for logging
if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)

# Target metadata for auto-generate support
target_metadata = Base.metadata


def _database_url() -> str:
    """Explicit sqlalchemy.url on the Config wins over application settings."""
    return config.get_main_option("sqlalchemy.url") or settings.DATABASE_URL


def run_migrations_offline() -> None:
    """
    PURPOSE: Run migrations in 'offline' mode.

    Configures the context with just a URL and emits SQL to the script
    output instead of executing it.
    """
    url = _database_url()
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=url.startswith("sqlite"),
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    """
    PURPOSE: Execute migrations using async connection.

    Args:
        connection: SQLAlchemy connection object
    """
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        render_as_batch=connection.dialect.name == "sqlite",
    )

    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    """
    PURPOSE: Create an async engine and run migrations.
    """
    engine: AsyncEngine = create_async_engine(
        _database_url(),
        echo=settings.DEBUG,
        poolclass=pool.NullPool,
    )

    async with engine.begin() as connection:
        await connection.run_sync(do_run_migrations)

    await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_async_migrations())

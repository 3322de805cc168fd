"""Async engine and session management for the exercise store."""

from __future__ import annotations

import logging
import re
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from songlingo.config.settings import DatabaseConfig, settings
from songlingo.models import Base

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def resolve_schema(raw_schema: Optional[str]) -> Optional[str]:
    """Return the configured schema when it is a plain SQL identifier."""

    schema = (raw_schema or "").strip()
    if not schema:
        return None
    if not _IDENTIFIER.fullmatch(schema):
        logger.warning("Ignoring invalid schema name %r; using the default search_path.", raw_schema)
        return None
    return schema


SCHEMA = resolve_schema(settings.database.schema_name)

if SCHEMA:
    for table in Base.metadata.tables.values():
        table.schema = table.schema or SCHEMA


def _engine_options(config: DatabaseConfig) -> dict[str, Any]:
    options: dict[str, Any] = {"echo": settings.debug, "pool_pre_ping": True}
    if config.serverless or settings.debug:
        # Serverless databases must be allowed to pause between requests.
        options["poolclass"] = NullPool
    if SCHEMA:
        # asyncpg applies this on every new connection.
        options["connect_args"] = {
            "server_settings": {"search_path": f"{SCHEMA},public"},
        }
    return options


engine: AsyncEngine = create_async_engine(
    settings.database.url,
    **_engine_options(settings.database),
)

SessionFactory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """Yield a short-lived session; callers own commit and rollback."""

    async with SessionFactory() as session:
        yield session


async def init_models() -> None:
    """Create the schema and exercise tables when missing."""

    async with engine.begin() as conn:
        if SCHEMA:
            await conn.execute(text(f'CREATE SCHEMA IF NOT EXISTS "{SCHEMA}"'))
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Ensured database tables in schema %s", SCHEMA or "public")


async def dispose_engine() -> None:
    await engine.dispose()

"""PostgreSQL connection pool for the record store.

Only built when DATABASE_URL is set; otherwise ``engine`` and
``async_session_factory`` are None and dependencies.py picks the Redis or
in-memory store. PgRecordStore opens one session per store primitive, so
nothing here is request-scoped.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from checkin.core.config import SETTINGS, Settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base shared by checkin.db.tables and alembic/env.py."""


def build_engine(settings: Settings) -> AsyncEngine | None:
    if not settings.database_url:
        return None
    # A door waiting on a pooled connection should give up inside the
    # store timeout and report StoreUnavailable, not hang.
    return create_async_engine(
        settings.database_url,
        echo=settings.is_dev,
        pool_size=5,
        max_overflow=10,
        pool_timeout=settings.store_timeout_seconds,
        pool_pre_ping=True,
    )


engine = build_engine(SETTINGS)
async_session_factory = (
    async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    if engine is not None
    else None
)


@asynccontextmanager
async def lifespan_db():
    if engine is None:
        logger.info("PostgreSQL store disabled  reason=no DATABASE_URL")
        yield
        return

    logger.info("PostgreSQL store enabled  url=%s", engine.url)
    try:
        yield
    finally:
        await engine.dispose()
        logger.info("PostgreSQL pool disposed")

"""Redis connection management.

Mirrors engine.py: when REDIS_URL is configured (and DATABASE_URL is
not), the record store lives in Redis; otherwise redis_pool is None and
nothing here talks to a server.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis

from checkin.core.config import SETTINGS

logger = logging.getLogger(__name__)

if SETTINGS.redis_url:
    redis_pool: aioredis.Redis | None = aioredis.from_url(  # type: ignore[type-arg]
        SETTINGS.redis_url,
        decode_responses=True,
        max_connections=20,
        socket_timeout=SETTINGS.store_timeout_seconds,
        socket_connect_timeout=SETTINGS.store_timeout_seconds,
    )
else:
    redis_pool = None


@asynccontextmanager
async def lifespan_redis():
    """Startup/shutdown hook for Redis, mirroring lifespan_db().

    An unreachable Redis at startup is logged, not fatal: /ready reports
    503 until it answers, and store calls surface StoreUnavailable.
    """
    if redis_pool is None:
        logger.info("No REDIS_URL configured, Redis store disabled")
        yield
        return

    try:
        await redis_pool.ping()  # type: ignore[misc]
        logger.info("Redis connected: %s", SETTINGS.redis_url)
    except Exception:
        logger.exception("Redis connection failed on startup")

    yield

    await redis_pool.aclose()
    logger.info("Redis connection pool closed")

"""Health and readiness endpoints.

  /health (liveness):
    "Is this process alive?"  Always 200; the body reports whether the
    record store answers.  A door station polls this to show a
    connectivity light.

  /ready (readiness):
    "Can this instance serve scans right now?"  503 while the record
    store is unreachable, so the load balancer stops routing doors here
    until it recovers.  Unlike a failed liveness probe, nothing restarts.
"""

from __future__ import annotations

from fastapi import APIRouter, Response

from checkin.api.dependencies import record_store
from checkin.core.config import SETTINGS
from checkin.core.errors import StoreUnavailableError
from checkin.repos.record_store import call_store

router = APIRouter(tags=["health"])


async def _store_reachable() -> bool:
    try:
        return await call_store(
            "ping", record_store.ping(), SETTINGS.store_timeout_seconds
        )
    except StoreUnavailableError:
        return False


@router.get("/health")
async def health() -> dict:
    """Liveness probe plus store status; 200 even when degraded."""
    reachable = await _store_reachable()
    return {
        "status": "ok" if reachable else "degraded",
        "backend": SETTINGS.store_backend,
        "checks": {"store": "ok" if reachable else "degraded"},
    }


@router.get("/ready")
async def ready() -> Response:
    if not await _store_reachable():
        return Response(status_code=503)
    return Response(status_code=200)

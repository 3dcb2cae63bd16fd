from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from checkin.api.batches import router as batches_router
from checkin.api.guests import router as guests_router
from checkin.api.health import router as health_router
from checkin.api.metrics_endpoint import router as metrics_router
from checkin.api.reports import router as reports_router
from checkin.api.scans import router as scans_router
from checkin.core.config import SETTINGS
from checkin.core.errors import (
    DuplicateCredentialIdError,
    PartialBatchFailureError,
    StoreUnavailableError,
)
from checkin.core.logging import setup_logging
from checkin.db.engine import lifespan_db
from checkin.db.redis import lifespan_redis
from checkin.middleware.metrics import MetricsMiddleware
from checkin.middleware.request_context import RequestContextMiddleware

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    async with lifespan_db():
        async with lifespan_redis():
            yield


app = FastAPI(
    title="event-checkin",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

# Last-added runs first: RequestContext (outermost) → Metrics → route handler
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)


@app.exception_handler(StoreUnavailableError)
async def store_unavailable_handler(
    _request: Request, exc: StoreUnavailableError
) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"code": exc.code, "message": exc.message},
        headers={"Retry-After": "1"},
    )


@app.exception_handler(PartialBatchFailureError)
async def partial_batch_handler(
    _request: Request, exc: PartialBatchFailureError
) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "code": exc.code,
            "message": exc.message,
            "batch_id": exc.batch_id,
            "committed_groups": exc.committed_groups,
            "total_groups": exc.total_groups,
            "committed_records": exc.committed_records,
        },
    )


@app.exception_handler(DuplicateCredentialIdError)
async def duplicate_credential_handler(
    _request: Request, exc: DuplicateCredentialIdError
) -> JSONResponse:
    logger.error(
        "Generated credential id already stored  credential_ids=%s",
        ",".join(exc.credential_ids),
    )
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"code": exc.code, "message": exc.message},
    )


app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(guests_router)
app.include_router(scans_router)
app.include_router(batches_router)
app.include_router(reports_router)

logger.info(
    "event-checkin started  env=%s log_level=%s port=%d store=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    SETTINGS.store_backend,
)

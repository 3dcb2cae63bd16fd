"""Request context middleware: request id, station id, timing.

Several doors and registration desks hit the service at once, so their
log lines interleave.  Every line emitted while serving a request is
stamped with:

  request_id    X-Request-ID from the client, or a fresh UUID; echoed back
  station_id    X-Station-ID, the door or desk that sent the request

Both live in ContextVars rather than thread-locals: FastAPI serves many
requests concurrently on one thread, and each asyncio task gets its own
copy of a ContextVar.
"""

from __future__ import annotations

import logging
import time
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

request_id_var: ContextVar[str] = ContextVar("request_id", default="-")
station_id_var: ContextVar[str] = ContextVar("station_id", default="-")


_base_record_factory = logging.getLogRecordFactory()


def _context_record_factory(*args, **kwargs) -> logging.LogRecord:
    """Stamp request_id and station_id onto every LogRecord at creation.

    A record factory rather than a filter: logger filters do not run for
    records propagated from child loggers, and handler filters are lost
    whenever logging is reconfigured.
    """
    record = _base_record_factory(*args, **kwargs)
    record.request_id = request_id_var.get()
    record.station_id = station_id_var.get()
    return record


if not getattr(logging.getLogRecordFactory(), "_checkin_context", False):
    _context_record_factory._checkin_context = True  # type: ignore[attr-defined]
    logging.setLogRecordFactory(_context_record_factory)


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        req_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        station_id = request.headers.get("x-station-id", "").strip() or "-"
        request_id_var.set(req_id)
        station_id_var.set(station_id)

        start = time.monotonic()
        response = await call_next(request)
        duration_ms = round((time.monotonic() - start) * 1000, 1)

        logger.info(
            "%s %s → %d (%.1fms)",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )

        response.headers["X-Request-ID"] = req_id
        return response
